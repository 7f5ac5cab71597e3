"""ユーザー tools.toml とプロジェクト設定のマージのテスト。"""

from pathlib import Path

from accountbox.env import AccountboxEnv
from accountbox.tools_config import (
    merge_tool_tables,
    resolve_tool_definition_with_sources,
    resolve_tools_for_cwd,
)
from accountbox.user_tools import resolve_user_tools_path


def _write(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p


def test_merge_replaces_whole_definition() -> None:
    user = {"aider": {"command": "aider", "env": {"A": "1"}}, "x": {"command": "x"}}
    project = {"aider": {"command": "aider2"}, "projonly": {"command": "p"}}

    merged = merge_tool_tables(user, project)
    assert merged["aider"] == {"command": "aider2"}
    assert list(merged) == ["aider", "x", "projonly"]
    # 入力は書き換えない
    assert user["aider"]["env"] == {"A": "1"}


def test_user_tools_path_order(ab_env: AccountboxEnv) -> None:
    assert resolve_user_tools_path(ab_env) == ab_env.user_tools_toml_default

    _write(ab_env.user_tools_toml_legacy, "")
    assert resolve_user_tools_path(ab_env) == ab_env.user_tools_toml_legacy

    _write(ab_env.user_tools_toml_default, "")
    assert resolve_user_tools_path(ab_env) == ab_env.user_tools_toml_default


def test_user_tools_override_wins_even_if_missing(ab_env: AccountboxEnv, tmp_path: Path) -> None:
    _write(ab_env.user_tools_toml_default, "")
    ab_env.tools_toml_override = tmp_path / "nope.toml"
    assert resolve_user_tools_path(ab_env) == tmp_path / "nope.toml"
    assert resolve_tools_for_cwd(ab_env, tmp_path).user.file is None


def test_resolve_tools_for_cwd(ab_env: AccountboxEnv, repo: Path) -> None:
    _write(
        ab_env.user_tools_toml_default,
        'codex_account = "user-default"\n\n[tools.aider]\ncommand = "aider"\n\n[tools.gemini]\nmode = "container"\nimage = "g"\n',
    )
    _write(repo / ".accountbox.toml", 'aider_account = "proj"\n\n[tools.aider]\ncommand = "aider-proj"\n')

    resolved = resolve_tools_for_cwd(ab_env, repo)
    assert resolved.project_path == repo.resolve() / ".accountbox.toml"
    assert resolved.user_path == ab_env.user_tools_toml_default
    assert resolved.merged_tools["aider"] == {"command": "aider-proj"}
    assert resolved.merged_tools["gemini"]["image"] == "g"

    assert resolved.default_account("aider") == "proj"
    assert resolved.default_account("codex") == "user-default"
    assert resolved.default_account("gemini") is None


def test_project_default_overrides_user_default(ab_env: AccountboxEnv, repo: Path) -> None:
    _write(ab_env.user_tools_toml_default, 'codex_account = "user"\n')
    _write(repo / ".accountbox.toml", 'codex_account = "project"\n')

    resolved = resolve_tools_for_cwd(ab_env, repo)
    assert resolved.default_account("codex") == "project"
    assert resolved.defaults()["codex_account"] == "project"


def test_definition_with_sources(ab_env: AccountboxEnv, repo: Path) -> None:
    _write(ab_env.user_tools_toml_default, '[tools.aider]\ncommand = "aider"\nenv = { K = "v" }\n')
    _write(repo / ".accountbox.toml", '[tools.aider]\ncommand = "aider-proj"\n')

    ws = resolve_tool_definition_with_sources("aider", resolve_tools_for_cwd(ab_env, repo))
    assert ws.merged == {"command": "aider-proj"}
    assert ws.user is not None and ws.user.definition["env"] == {"K": "v"}
    assert ws.project is not None and ws.project.file == repo.resolve() / ".accountbox.toml"

    missing = resolve_tool_definition_with_sources("nope", resolve_tools_for_cwd(ab_env, repo))
    assert missing.merged is None
    assert missing.user is None and missing.project is None


def test_user_path_is_placeholder_when_missing(ab_env: AccountboxEnv, repo: Path) -> None:
    resolved = resolve_tools_for_cwd(ab_env, repo)
    assert resolved.user.file is None
    assert resolved.user_path == ab_env.user_tools_toml_default
    assert not resolved.user_path.exists()
