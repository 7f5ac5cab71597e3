"""表示用の整形とマスク。

トークンそのものは絶対に表示しない。email / id はマスクしてから出す。
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from typing import Any

ELLIPSIS = "…"


def _mask_part(s: str) -> str:
    if len(s) <= 2:
        return f"{s[0]}{ELLIPSIS}"
    return f"{s[0]}{ELLIPSIS}{s[-1]}"


def mask_email(email: Any) -> str | None:
    """`roshan@example.com` -> `r…n@example.com`"""
    if not isinstance(email, str) or not email:
        return None
    local, at, domain = email.partition("@")
    if not at:
        return _mask_part(email)
    if not local:
        return f"{ELLIPSIS}@{domain}"
    return f"{_mask_part(local)}@{domain}"


def mask_id(value: Any, keep: int = 8) -> str | None:
    if not isinstance(value, str):
        return None
    n = max(4, keep)
    return value if len(value) <= n else f"{value[:n]}{ELLIPSIS}"


def decode_jwt_payload(jwt: Any) -> dict[str, Any] | None:
    """JWT の payload（2番目のセグメント）を base64url デコードする。署名は検証しない。

    パディング欠けは補う。壊れていれば None。
    """
    if not isinstance(jwt, str):
        return None
    parts = jwt.split(".")
    if len(parts) < 2:
        return None
    raw = parts[1]
    raw += "=" * (-len(raw) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(raw.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def format_duration_short(seconds: Any) -> str:
    try:
        s = float(seconds)
    except (TypeError, ValueError):
        return "n/a"
    if not math.isfinite(s) or s <= 0:
        return "n/a"
    if s < 60:
        return f"{round(s)}s"
    if s < 3600:
        return f"{round(s / 60)}m"
    if s < 86400:
        return f"{round(s / 3600)}h"
    return f"{round(s / 86400)}d"


def _format_window(w: dict[str, Any]) -> str:
    reset = w.get("reset_after_seconds")
    if reset is None:
        reset = w.get("limit_window_seconds")
    return f"{w.get('used_percent')}%/{format_duration_short(reset)}"


def format_rate_limit(rl: Any) -> str:
    if not isinstance(rl, dict) or not rl:
        return "n/a"
    if rl.get("allowed") is False:
        return "blocked"

    parts = []
    for key in ("primary_window", "secondary_window"):
        w = rl.get(key)
        if isinstance(w, dict):
            parts.append(_format_window(w))
    out = " + ".join(parts) or "n/a"
    if rl.get("limit_reached"):
        out += " (LIMIT)"
    return out


def format_credits(c: Any) -> str:
    if not isinstance(c, dict) or not c:
        return "n/a"
    if c.get("unlimited"):
        return "unlimited"
    if not c.get("has_credits"):
        return "none"
    balance = c.get("balance")
    if isinstance(balance, (int, float)) and not isinstance(balance, bool):
        return str(balance)
    return "has"


def sanitize_usage(usage: Any) -> dict[str, Any] | None:
    """usage レスポンスの個人情報をマスクしたコピー。"""
    if not isinstance(usage, dict):
        return None
    out = dict(usage)
    if "email" in out:
        out["email"] = mask_email(out["email"])
    if "user_id" in out:
        out["user_id"] = mask_id(out["user_id"], 10)
    if "account_id" in out:
        out["account_id"] = mask_id(out["account_id"], 8)
    return out


def usage_summary(usage: dict[str, Any] | None) -> str:
    u = usage or {}
    return (
        f"plan={u.get('plan_type') or 'n/a'} "
        f"email={mask_email(u.get('email')) or 'n/a'} "
        f"rate={format_rate_limit(u.get('rate_limit'))} "
        f"review={format_rate_limit(u.get('code_review_rate_limit'))} "
        f"credits={format_credits(u.get('credits'))}"
    )
