"""account ごとの利用上限（ChatGPT wham/usage）の取得。

- fetch_one: 1 account 分。失敗は LimitResult(ok=False) として返す
- fetch_all: 固定数のワーカースレッドが index のキューから取り出して処理する。
  結果は入力順で、1つの失敗/遅延が他の account の結果を壊さない

各ワーカーが触るのは自分の account の auth.json と自分のリクエストだけなのでロックは不要。
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import requests

from accountbox.credentials import CredentialStore, identity_from_auth
from accountbox.errors import AccountboxError, RemoteError, UnsupportedOperationError

log = logging.getLogger(__name__)

WHAM_USAGE_URL = "https://chatgpt.com/backend-api/wham/usage"
DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_CONCURRENCY = 4
MAX_CONCURRENCY = 8
SNIPPET_CHARS = 220
BODY_CHUNK_BYTES = 1


@dataclass
class LimitResult:
    account: str
    ok: bool
    usage: dict[str, Any] | None = None
    error: str | None = None


def _snippet(text: str) -> str:
    return " ".join(text[:SNIPPET_CHARS].split())


def _read_body(r: requests.Response, deadline: float, timeout_ms: int) -> bytes:
    # 小さく読む。大きな chunk だと揃うまで deadline を確認できない
    body = bytearray()
    for chunk in r.iter_content(chunk_size=BODY_CHUNK_BYTES):
        if time.monotonic() > deadline:
            raise RemoteError(f"wham/usage timed out after {timeout_ms}ms")
        body += chunk
    return bytes(body)


def fetch_usage(
    access_token: str,
    chatgpt_account_id: str | None = None,
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> dict[str, Any]:
    """wham/usage を1回だけ叩く。ヘッダもボディも timeout_ms 以内に揃わなければ RemoteError。"""
    if not access_token:
        raise RemoteError("Missing access token.")

    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }
    if chatgpt_account_id:
        headers["ChatGPT-Account-Id"] = str(chatgpt_account_id)

    timeout = timeout_ms / 1000
    deadline = time.monotonic() + timeout
    try:
        with requests.get(WHAM_USAGE_URL, headers=headers, timeout=(timeout, timeout), stream=True) as r:
            status = r.status_code
            body = _read_body(r, deadline, timeout_ms)
    except requests.Timeout as e:
        raise RemoteError(f"wham/usage timed out after {timeout_ms}ms") from e
    except requests.RequestException as e:
        # ボディ読み込み中の read timeout は ConnectionError で届く
        if time.monotonic() >= deadline:
            raise RemoteError(f"wham/usage timed out after {timeout_ms}ms") from e
        raise RemoteError(f"wham/usage request failed: {type(e).__name__}") from e

    if not 200 <= status < 300:
        snippet = _snippet(body.decode("utf-8", errors="replace"))
        raise RemoteError(f"HTTP {status} from wham/usage" + (f": {snippet}" if snippet else ""))

    try:
        data = json.loads(body)
    except ValueError as e:
        raise RemoteError("wham/usage returned non-JSON.") from e
    if not isinstance(data, dict):
        raise RemoteError("wham/usage returned non-JSON.")
    return data


UsageFetcher = Callable[..., dict[str, Any]]


def clamp_concurrency(n: float) -> int:
    return max(1, min(MAX_CONCURRENCY, int(n)))


class LimitsFanout:
    def __init__(self, store: CredentialStore, fetcher: UsageFetcher | None = None) -> None:
        self.store = store
        self.fetcher = fetcher or fetch_usage

    def _usage_for(self, account: str, timeout_ms: int) -> dict[str, Any]:
        ident = identity_from_auth(self.store.read_auth(account))
        if not ident.access_token:
            if ident.has_api_key:
                raise UnsupportedOperationError("api-key auth: limits fetch not implemented yet")
            raise RemoteError("missing access_token (not logged in?)")
        return self.fetcher(ident.access_token, ident.chatgpt_account_id, timeout_ms=timeout_ms)

    def fetch_one(self, account: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> LimitResult:
        try:
            usage = self._usage_for(account, timeout_ms)
        except AccountboxError as e:
            return LimitResult(account=account, ok=False, error=str(e))
        return LimitResult(account=account, ok=True, usage=usage)

    def fetch_all(
        self,
        accounts: Sequence[str],
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> list[LimitResult]:
        if not accounts:
            return []

        results: list[LimitResult | None] = [None] * len(accounts)
        q: queue.Queue[int] = queue.Queue()
        for i in range(len(accounts)):
            q.put(i)

        def worker() -> None:
            while True:
                try:
                    i = q.get_nowait()
                except queue.Empty:
                    return
                account = accounts[i]
                try:
                    results[i] = self.fetch_one(account, timeout_ms)
                except Exception as e:  # noqa: BLE001
                    log.error("limits fetch crashed account=%s", account, exc_info=True)
                    results[i] = LimitResult(account=account, ok=False, error=str(e) or type(e).__name__)

        n_workers = min(max(1, concurrency), len(accounts))
        threads = [threading.Thread(target=worker, name=f"limits-{n}", daemon=True) for n in range(n_workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        return [r if r is not None else LimitResult(account=a, ok=False, error="not fetched") for r, a in zip(results, accounts)]
