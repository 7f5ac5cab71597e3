"""位置引数の解釈。

`accountbox codex limits` のように、先頭トークンが account ではなく
ヘルパーサブコマンドやオプションであるケースを見分ける。
"""

from __future__ import annotations

import math
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field


def looks_like_option(token: str | None) -> bool:
    return isinstance(token, str) and token.startswith("-")


def has_any(args: Sequence[str], tokens: Sequence[str]) -> bool:
    return any(t in args for t in tokens)


def read_option_value(args: Sequence[str], long_name: str, fallback: str | None = None) -> str | None:
    """`--name=value` または `--name value` の値。"""
    prefix = f"{long_name}="
    for a in args:
        if a.startswith(prefix):
            return a[len(prefix) :]
    if long_name in args:
        idx = list(args).index(long_name)
        if idx + 1 < len(args) and args[idx + 1]:
            return args[idx + 1]
    return fallback


def read_option_number(args: Sequence[str], long_name: str, fallback: float) -> float:
    raw = read_option_value(args, long_name)
    if raw is None:
        return fallback
    try:
        n = float(raw)
    except ValueError:
        return fallback
    return n if math.isfinite(n) else fallback


def normalize_tool_id(s: str | None) -> str:
    return (s or "").strip()


@dataclass
class Disambiguated:
    account_arg: str | None
    args_list: list[str] = field(default_factory=list)
    is_subcommand: bool = False
    looks_like_option: bool = False


def disambiguate_account_arg(
    account: str | None,
    args: Sequence[str] | None,
    known_subcommands: Collection[str] | None,
) -> Disambiguated:
    """account 位置のトークンがサブコマンド/オプションなら args 側へ戻す。"""
    args_list = list(args or [])
    is_subcommand = bool(account) and known_subcommands is not None and account in known_subcommands
    is_option = looks_like_option(account)

    if is_subcommand or is_option:
        return Disambiguated(
            account_arg=None,
            args_list=[account, *args_list],  # type: ignore[list-item]
            is_subcommand=is_subcommand,
            looks_like_option=is_option,
        )
    return Disambiguated(account_arg=account or None, args_list=args_list)
