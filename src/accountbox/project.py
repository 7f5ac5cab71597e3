"""プロジェクト設定 `.accountbox.toml`（旧名 `.devbox.toml`）。

### .accountbox.toml

```toml
codex_account = "work"
claude_account = "personal"

[tools.aider]
mode = "native"
command = "aider"
```

cwd から git ルートまで遡って最初に見つかったファイルを使う。
git リポジトリの外ではプロジェクト設定は無いものとして扱う。
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from accountbox.errors import ResolutionError
from accountbox.git import find_git_root
from accountbox.tomlfile import TomlDoc, read_toml

PROJECT_CONFIG_NAME = ".accountbox.toml"
LEGACY_PROJECT_CONFIG_NAME = ".devbox.toml"

TABLE_HEADER_RE = re.compile(r"^\s*\[")


def tool_key_for_defaults(tool_id: str) -> str:
    return f"{tool_id}_account"


def find_project_config(cwd: Path) -> Path | None:
    git_root = find_git_root(cwd)
    if git_root is None:
        return None

    d = cwd.resolve()
    while True:
        for name in (PROJECT_CONFIG_NAME, LEGACY_PROJECT_CONFIG_NAME):
            f = d / name
            if f.is_file():
                return f
        if d == git_root or d.parent == d:
            return None
        d = d.parent


def read_project_config(cwd: Path) -> TomlDoc:
    return read_toml(find_project_config(cwd))


def resolve_account_or_throw(
    passed: str | None,
    defaults_key: str,
    config: Mapping[str, Any] | None,
) -> str:
    if passed:
        return passed
    value = (config or {}).get(defaults_key)
    if value:
        return str(value)
    raise ResolutionError(
        f"Missing account. Provide <account> or set a default in {PROJECT_CONFIG_NAME} ({defaults_key})."
    )


def set_project_default(tool_id: str, account: str, cwd: Path) -> Path:
    """git ルートの `.accountbox.toml` に `<tool>_account = "..."` を書く（他の行は保持）。"""
    git_root = find_git_root(cwd)
    if git_root is None:
        raise ResolutionError(
            "Not inside a git repo (.git not found). "
            f"Run this inside the repo you want to configure (cwd: {cwd})."
        )
    f = git_root / PROJECT_CONFIG_NAME
    key = tool_key_for_defaults(tool_id)
    line = f'{key} = "{account}"'

    lines: list[str] = []
    if f.exists():
        lines = f.read_text(encoding="utf-8").splitlines()

    # トップレベルのキーだけが対象。最初のテーブル見出しより後ろには書かない
    first_table = next((i for i, s in enumerate(lines) if TABLE_HEADER_RE.match(s)), len(lines))
    pattern = re.compile(rf"^{re.escape(key)}\s*=")
    top = lines[:first_table]
    tables = lines[first_table:]

    replaced = False
    out: list[str] = []
    for existing in top:
        if pattern.match(existing):
            out.append(line)
            replaced = True
        else:
            out.append(existing)
    if not replaced:
        while out and not out[-1].strip():
            out.pop()
        out.append(line)
        if tables:
            out.append("")

    f.write_text("\n".join([*out, *tables]).rstrip("\n") + "\n", encoding="utf-8")
    return f
