"""account ごとに隔離したブラウザプロファイルで URL を開く。

OAuth のログイン画面を普段使いのブラウザセッションと混ぜないためのもの。
Chrome/Chromium があれば `--user-data-dir` で専用プロファイルを使い、
無ければ既定ブラウザにフォールバックする。
"""

from __future__ import annotations

import logging
from pathlib import Path

from accountbox.env import AccountboxEnv
from accountbox.errors import AccountboxError, ProcessError
from accountbox.fsutil import backup_path
from accountbox.process import ProcessRunner

log = logging.getLogger(__name__)

MAC_CHROME_APP = Path("/Applications/Google Chrome.app")
LINUX_CHROME_CANDIDATES = ["google-chrome", "google-chrome-stable", "chromium", "chromium-browser"]


def browser_profile_dir(env: AccountboxEnv, account: str) -> Path:
    return env.home / "browser" / account


class BrowserOpener:
    def __init__(self, env: AccountboxEnv, runner: ProcessRunner) -> None:
        self.env = env
        self.runner = runner

    def reset_profile(self, account: str) -> Path | None:
        """プロファイルを `<dir>.bak-<ts>` へ退避する。無ければ None。"""
        profile_dir = browser_profile_dir(self.env, account)
        if not profile_dir.exists():
            return None
        bak = backup_path(profile_dir, ".bak-")
        try:
            profile_dir.rename(bak)
        except OSError as e:
            raise AccountboxError(
                f"Failed to reset sandboxed browser profile for '{account}'. "
                f"Close Chrome windows using this profile and retry. ({e})"
            ) from e
        return bak

    def chrome_args(self, profile_dir: Path, url: str) -> list[str]:
        return [
            f"--user-data-dir={profile_dir}",
            "--no-first-run",
            "--no-default-browser-check",
            # Codex の callback は 127.0.0.1 で待ち受ける。localhost が IPv6 に解決される環境向け
            "--host-resolver-rules=MAP localhost 127.0.0.1",
            url,
        ]

    def open(self, account: str, url: str) -> None:
        profile_dir = browser_profile_dir(self.env, account)
        profile_dir.mkdir(parents=True, exist_ok=True)
        chrome_args = self.chrome_args(profile_dir, url)
        platform = self.env.platform

        if platform == "darwin":
            if MAC_CHROME_APP.exists():
                self.runner.run(["open", "-na", str(MAC_CHROME_APP), "--args", *chrome_args])
                return
            self.runner.run(["open", url])
            return

        if platform.startswith("linux"):
            for candidate in LINUX_CHROME_CANDIDATES:
                if self.runner.which(candidate) is None:
                    continue
                self.runner.spawn_detached([candidate, *chrome_args])
                return
            try:
                self.runner.run(["xdg-open", url])
                return
            except ProcessError:
                log.info("xdg-open failed for account=%s", account)

        if platform == "win32":
            self.runner.spawn_detached(["cmd", "/c", "start", "", url])
            return

        raise AccountboxError(
            "Could not open a browser automatically. Copy/paste the login URL into your browser instead."
        )
