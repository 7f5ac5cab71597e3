"""ホスト codex login の補助（URL 検出とブラウザ起動）のテスト。"""

import pytest

from accountbox.env import AccountboxEnv
from accountbox.errors import AccountboxError, ProcessError
from accountbox.login_flow import (
    STATE_AWAITING_URL,
    STATE_OPENED,
    BrowserOpenTrigger,
    resolve_host_codex,
)
from conftest import AUTH_URL


def test_trigger_opens_first_url_once() -> None:
    opened: list[str] = []
    t = BrowserOpenTrigger(open_url=opened.append)

    t.feed("Starting local login server\n")
    assert t.state == STATE_AWAITING_URL

    t.feed(f"  {AUTH_URL}\n")
    t.feed("https://auth.openai.com/oauth/authorize?second=1\n")
    assert opened == [AUTH_URL]
    assert t.state == STATE_OPENED
    assert t.opened_url == AUTH_URL


def test_trigger_disabled() -> None:
    opened: list[str] = []
    t = BrowserOpenTrigger(open_url=opened.append, enabled=False)
    t.feed(f"{AUTH_URL}\n")
    assert opened == []
    assert t.state == STATE_AWAITING_URL


def test_trigger_open_failure_is_reported_not_retried() -> None:
    calls: list[str] = []
    errors: list[str] = []

    def fail(url: str) -> None:
        calls.append(url)
        raise AccountboxError("no browser")

    t = BrowserOpenTrigger(open_url=fail, on_error=errors.append)
    t.feed(f"{AUTH_URL}\n")
    t.feed(f"{AUTH_URL}\n")
    assert calls == [AUTH_URL]
    assert t.state == STATE_OPENED
    assert errors == ["Could not open sandboxed browser automatically: no browser"]


def test_resolve_host_codex(ab_env: AccountboxEnv, runner) -> None:
    assert resolve_host_codex(ab_env, runner).argv == ["codex"]

    runner.available = {"npx"}
    c = resolve_host_codex(ab_env, runner)
    assert c.kind == "npx"
    assert c.argv == ["npx", "-y", ab_env.codex_host_npm_spec]

    runner.available = set()
    with pytest.raises(ProcessError) as e:
        resolve_host_codex(ab_env, runner)
    assert "npm i -g @openai/codex" in str(e.value)
