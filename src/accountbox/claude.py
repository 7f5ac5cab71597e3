"""built-in: claude。ネイティブ実行で、account ごとに XDG ディレクトリを分ける。"""

from __future__ import annotations

from pathlib import Path

from accountbox.env import AccountboxEnv
from accountbox.process import ProcessRunner
from accountbox.runners import isolated_xdg_env

CLAUDE_KNOWN_SUBCOMMANDS = frozenset(
    {
        "doctor",
        "install",
        "mcp",
        "plugin",
        "setup-token",
        "update",
    }
)


class ClaudeTool:
    id = "claude"

    def __init__(self, *, env: AccountboxEnv, runner: ProcessRunner) -> None:
        self.env = env
        self.runner = runner

    def state_dir(self, account: str) -> Path:
        return self.env.home / "claude" / account

    def run(self, account: str, args: list[str], cwd: Path) -> int:
        child_env = dict(self.env.environ)
        child_env.update(isolated_xdg_env(self.state_dir(account)))
        return self.runner.run(["claude", *args], cwd=cwd, env=child_env, check=False)
