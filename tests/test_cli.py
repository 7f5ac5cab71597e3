"""CLI（typer）のテスト。"""

import json
from pathlib import Path

from typer.testing import CliRunner

from accountbox.cli import app
from accountbox.context import Services

cli = CliRunner()


def _invoke(services: Services, args: list[str]):
    return cli.invoke(app, args, obj=services)


def test_codex_list_empty(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["codex", "list"])
    assert r.exit_code == 0
    assert any("No Codex accounts found" in line for line in services.ui.lines)


def test_run_codex_limits_without_accounts(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["run", "codex", "limits"])
    assert r.exit_code == 0
    assert services.ui.lines[-1].startswith("No Codex accounts found under")


def test_codex_missing_account_exits_1(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["codex"])
    assert r.exit_code == 1
    assert "Missing account" in r.output


def test_codex_status_exit_code_propagates(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["codex", "work", "status"])
    assert r.exit_code == 1


def test_codex_passes_unknown_options(services: Services, runner, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["codex", "work", "exec", "--full-auto", "fix it"])
    assert r.exit_code == 0
    assert runner.calls_starting("docker", "run")[-1][-3:] == ["exec", "--full-auto", "fix it"]


def test_set_and_resolve(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["set", "codex", "work"])
    assert r.exit_code == 0
    assert (repo / ".accountbox.toml").is_file()

    r = _invoke(services, ["resolve", "codex"])
    assert r.exit_code == 0
    assert services.ui.lines[-1] == "work"

    r = _invoke(services, ["resolve", "codex", "--json"])
    payload = json.loads(services.ui.lines[-1])
    assert payload["ok"] is True
    assert payload["account"] == "work"
    assert payload["accountKey"] == "codex_account"


def test_resolve_without_default(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["resolve", "claude", "--json"])
    assert r.exit_code == 1
    assert json.loads(services.ui.lines[-1])["ok"] is False

    r = _invoke(services, ["resolve", "nope"])
    assert r.exit_code == 1
    assert "Unknown tool 'nope'" in r.output


def test_tools_list_show_validate(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    (repo / ".accountbox.toml").write_text(
        '[tools.aider]\ncommand = "aider"\nenv = { AIDER_KEY = "secret" }\n\n[tools.bad]\nmode = "native"\n',
        encoding="utf-8",
    )

    r = _invoke(services, ["tools", "list"])
    assert r.exit_code == 0
    assert services.ui.lines[-4:] == ["aider\tnative", "bad\tnative", "claude\tbuilt-in", "codex\tbuilt-in"]

    r = _invoke(services, ["tools", "show", "aider", "--json"])
    shown = json.loads(services.ui.lines[-1])
    assert shown["merged"]["env"] == {"AIDER_KEY": "***"}
    assert shown["sources"]["user"] is None

    r = _invoke(services, ["tools", "show", "aider", "--json", "--raw"])
    assert json.loads(services.ui.lines[-1])["merged"]["env"] == {"AIDER_KEY": "secret"}

    r = _invoke(services, ["tools", "validate"])
    assert r.exit_code == 1
    assert services.ui.errors == ["bad: error: mode=native requires 'command' (string)"]


def test_tools_show_builtin(services: Services, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["tools", "show", "codex", "--json"])
    assert r.exit_code == 0
    assert "limits" in json.loads(services.ui.lines[-1])["capabilities"]


def test_doctor_json(services: Services, runner, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    r = _invoke(services, ["doctor", "--json"])
    assert r.exit_code == 0
    info = json.loads(services.ui.lines[-1])
    assert info["docker"] == "OK"
    assert info["claude"] == "missing"
    assert info["git_root"] == str(repo.resolve())

    runner.available = {"docker", "claude"}
    runner.docker_up = False
    _invoke(services, ["doctor"])
    assert "docker runtime: NOT REACHABLE" in services.ui.lines
    assert "claude: 1.0.0 (Claude Code)" in services.ui.lines


def test_browser_command(services: Services, runner, repo: Path, monkeypatch) -> None:
    monkeypatch.chdir(repo)
    runner.available.add("chromium")
    r = _invoke(services, ["browser", "work", "https://example.com"])
    assert r.exit_code == 0
    cmd = runner.spawned[-1]
    assert cmd[0] == "chromium"
    assert f"--user-data-dir={services.env.home / 'browser' / 'work'}" in cmd
    assert cmd[-1] == "https://example.com"
