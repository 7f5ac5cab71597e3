"""コマンドの振り分け。

account の解決順:
1. 明示された account
2. 先頭トークンがヘルパーサブコマンドだった場合は設定の既定値、無ければ "default"
3. それ以外は設定の既定値（無ければ ResolutionError）
"""

from __future__ import annotations

import logging
from pathlib import Path

from accountbox.args import disambiguate_account_arg
from accountbox.claude import CLAUDE_KNOWN_SUBCOMMANDS
from accountbox.codex import CODEX_HELPER_SUBCOMMANDS
from accountbox.context import Services
from accountbox.project import resolve_account_or_throw, tool_key_for_defaults
from accountbox.registry import ToolDefinition
from accountbox.runners import run_container_tool, run_native_tool
from accountbox.tools_config import resolve_tools_for_cwd
from accountbox.validate import MODE_NATIVE

log = logging.getLogger(__name__)

FALLBACK_ACCOUNT = "default"


def dispatch_codex(services: Services, account: str | None, args: list[str] | None, cwd: Path) -> int:
    codex = services.codex
    defaults = resolve_tools_for_cwd(services.env, cwd).defaults()
    d = disambiguate_account_arg(account, args, CODEX_HELPER_SUBCOMMANDS)

    default_account = defaults.get("codex_account") or FALLBACK_ACCOUNT
    if d.account_arg:
        resolved = d.account_arg
    elif d.is_subcommand:
        resolved = default_account
    else:
        resolved = resolve_account_or_throw(None, "codex_account", defaults)

    argv = d.args_list
    cmd = argv[0] if argv else None
    rest = argv[1:]
    log.info("codex dispatch account=%s cmd=%s", resolved, cmd if cmd in CODEX_HELPER_SUBCOMMANDS else "run")

    if cmd == "app":
        # `codex app <label>` の形も受け付ける
        target = resolved
        if d.is_subcommand and rest and not rest[0].startswith("-"):
            target = rest[0]
        codex.app(target, rest)
    elif cmd == "login":
        codex.login(resolved, rest, cwd)
    elif cmd == "logout":
        codex.logout(resolved, cwd)
    elif cmd == "status":
        return codex.status(resolved, cwd)
    elif cmd == "whoami":
        codex.whoami(resolved)
    elif cmd == "limits":
        codex.limits(resolved, rest, all_accounts=d.is_subcommand)
    elif cmd == "rebuild":
        codex.rebuild()
    elif cmd == "list":
        codex.list()
    elif cmd == "snapshots":
        codex.snapshots()
    elif cmd == "save":
        codex.save(resolved, argv)
    elif cmd == "switch":
        codex.switch(resolved, argv, default_account)
    elif cmd == "use":
        codex.use(argv, cwd)
    else:
        return codex.run(resolved, argv, cwd)
    return 0


def dispatch_claude(services: Services, account: str | None, args: list[str] | None, cwd: Path) -> int:
    defaults = resolve_tools_for_cwd(services.env, cwd).defaults()
    d = disambiguate_account_arg(account, args, CLAUDE_KNOWN_SUBCOMMANDS)

    if d.account_arg:
        resolved = d.account_arg
    elif d.is_subcommand or d.looks_like_option:
        resolved = defaults.get("claude_account") or FALLBACK_ACCOUNT
    else:
        resolved = resolve_account_or_throw(None, "claude_account", defaults)

    return services.claude.run(resolved, d.args_list, cwd)


def dispatch_configured_tool(
    services: Services,
    tool_id: str,
    account: str | None,
    args: list[str] | None,
    cwd: Path,
) -> int:
    d = disambiguate_account_arg(account, args, None)
    configured = services.registry.resolve_configured_tool(tool_id, cwd)
    if configured.definition is None:
        raise services.registry.unknown_tool_error(tool_id)

    resolved = resolve_account_or_throw(
        d.account_arg,
        tool_key_for_defaults(tool_id),
        configured.resolved.defaults(),
    )
    tool = ToolDefinition.from_mapping(tool_id, configured.definition)
    log.info("tool dispatch tool=%s mode=%s account=%s", tool_id, tool.mode, resolved)

    if tool.mode == MODE_NATIVE:
        return run_native_tool(services.env, services.runner, tool, resolved, d.args_list, cwd)
    return run_container_tool(services.docker, services.runner, tool, resolved, d.args_list, cwd)


def dispatch_tool(
    services: Services,
    tool_id: str,
    account: str | None,
    args: list[str] | None,
    cwd: Path,
) -> int:
    """`accountbox run <tool> ...`。built-in があればそちらを使う。"""
    builtin = services.registry.get_builtin(tool_id)
    if builtin is not None and builtin.id == "codex":
        return dispatch_codex(services, account, args, cwd)
    if builtin is not None and builtin.id == "claude":
        return dispatch_claude(services, account, args, cwd)
    return dispatch_configured_tool(services, tool_id, account, args, cwd)
