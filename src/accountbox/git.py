"""git ルートの検出（`.git` ディレクトリ、または worktree/submodule の `.git` ファイル）。"""

from __future__ import annotations

from pathlib import Path


def find_git_root(cwd: Path) -> Path | None:
    d = cwd.resolve()
    while True:
        if (d / ".git").exists():
            return d
        if d.parent == d:
            return None
        d = d.parent
