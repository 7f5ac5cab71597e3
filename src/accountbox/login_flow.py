"""ホスト側で codex login を走らせる部分。

ログイン出力を1行ずつ `BrowserOpenTrigger` に流し、最初に見つかった認可URLだけを
隔離ブラウザで開く。状態は `awaiting-url` -> `opened` の一方向。
URL が出てこなければ `awaiting-url` のまま終わる。
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from accountbox.env import AccountboxEnv
from accountbox.errors import AccountboxError, ProcessError
from accountbox.process import ProcessRunner

log = logging.getLogger(__name__)

AUTH_URL_RE = re.compile(r"(https://auth\.openai\.com/(?:oauth/authorize\?\S+|\S+))")

STATE_AWAITING_URL = "awaiting-url"
STATE_OPENED = "opened"


@dataclass
class BrowserOpenTrigger:
    """認可URLを高々1回だけ開く。"""

    open_url: Callable[[str], None]
    enabled: bool = True
    on_error: Callable[[str], None] | None = None
    state: str = STATE_AWAITING_URL
    opened_url: str | None = None

    def feed(self, line: str) -> None:
        if not self.enabled or self.state == STATE_OPENED:
            return
        m = AUTH_URL_RE.search(line)
        if not m:
            return

        # 開くのに失敗しても再試行しない
        self.state = STATE_OPENED
        self.opened_url = m.group(1)
        try:
            self.open_url(self.opened_url)
        except (AccountboxError, OSError) as e:
            log.warning("could not open sandboxed browser: %s", e)
            if self.on_error is not None:
                self.on_error(f"Could not open sandboxed browser automatically: {e}")


@dataclass
class HostCodexCommand:
    kind: str  # path | npx
    argv: list[str] = field(default_factory=list)


def resolve_host_codex(env: AccountboxEnv, runner: ProcessRunner) -> HostCodexCommand:
    """ホストで codex を実行する方法。PATH 上の codex、無ければ npx。"""
    if runner.which("codex") is not None:
        return HostCodexCommand(kind="path", argv=["codex"])
    if runner.which("npx") is not None:
        return HostCodexCommand(kind="npx", argv=["npx", "-y", env.codex_host_npm_spec])
    raise ProcessError(
        "Codex CLI not found on host. Install it with: npm i -g @openai/codex "
        "(or ensure npm/npx is available)."
    )
