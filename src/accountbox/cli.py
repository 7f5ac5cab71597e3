"""accountbox CLI エントリポイント。"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import typer

from accountbox.args import normalize_tool_id
from accountbox.browser import BrowserOpener
from accountbox.context import Services, build_services
from accountbox.dispatch import dispatch_claude, dispatch_codex, dispatch_tool
from accountbox.doctor import get_doctor_info
from accountbox.env import load_env
from accountbox.errors import AccountboxError, ResolutionError
from accountbox.git import find_git_root
from accountbox.logging_setup import setup_logging
from accountbox.project import set_project_default, tool_key_for_defaults
from accountbox.registry import describe_builtin, sanitize_tool_def
from accountbox.tools_config import resolve_tool_definition_with_sources, resolve_tools_for_cwd
from accountbox.ui import err_console
from accountbox.validate import MODE_NATIVE, validate_tool_def

APP_HELP = "Per-account wrappers for Codex + Claude Code, with per-project defaults and extensible tool runners"

PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}

app = typer.Typer(add_completion=False, help=APP_HELP)
tools_app = typer.Typer(add_completion=False, help="Inspect and validate tool/plugin configuration")
app.add_typer(tools_app, name="tools")


def _version() -> str:
    try:
        return version("accountbox")
    except PackageNotFoundError:
        return "0+unknown"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(_version())
        raise typer.Exit()


@contextmanager
def _errors() -> Iterator[None]:
    try:
        yield
    except AccountboxError as e:
        err_console.print(f"❌ {e}", style="red", markup=False)
        raise typer.Exit(code=1) from e


def _services(ctx: typer.Context) -> Services:
    return ctx.obj


@app.callback()
def main(
    ctx: typer.Context,
    _show_version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """accountbox: 1台のマシンで Codex / Claude のアカウントを使い分ける。"""
    if ctx.obj is None:
        env = load_env()
        setup_logging(log_dir=env.log_dir, level=env.log_level, verbose=env.verbose)
        ctx.obj = build_services(env)


@app.command(context_settings=PASSTHROUGH)
def codex(
    ctx: typer.Context,
    account: str | None = typer.Argument(None, help="account label (or a helper subcommand)"),
    args: list[str] | None = typer.Argument(None, help="codex args / helper args"),
) -> None:
    """Run Codex in a container with per-account isolation (helpers: app/login/logout/status/whoami/limits/rebuild/list/snapshots/save/switch/use)."""
    with _errors():
        code = dispatch_codex(_services(ctx), account, args, Path.cwd())
    raise typer.Exit(code=code)


@app.command(context_settings=PASSTHROUGH)
def claude(
    ctx: typer.Context,
    account: str | None = typer.Argument(None, help="account label"),
    args: list[str] | None = typer.Argument(None, help="claude args"),
) -> None:
    """Run Claude Code natively with per-account XDG isolation."""
    with _errors():
        code = dispatch_claude(_services(ctx), account, args, Path.cwd())
    raise typer.Exit(code=code)


@app.command(context_settings=PASSTHROUGH)
def run(
    ctx: typer.Context,
    tool: str = typer.Argument(..., help="tool id (built-in or configured)"),
    account: str | None = typer.Argument(None, help="account label"),
    args: list[str] | None = typer.Argument(None, help="tool args"),
) -> None:
    """Run an arbitrary tool from config (extensible)."""
    with _errors():
        code = dispatch_tool(_services(ctx), normalize_tool_id(tool), account, args, Path.cwd())
    raise typer.Exit(code=code)


@tools_app.command("list")
def tools_list(ctx: typer.Context) -> None:
    """List available tools (built-ins + configured)."""
    services = _services(ctx)
    ui = services.ui
    cwd = Path.cwd()
    with _errors():
        resolved = resolve_tools_for_cwd(services.env, cwd)
        ids = services.registry.list_tool_ids_for_cwd(cwd)
    if not ids:
        ui.info("No tools found.")
        return
    for tool_id in ids:
        if services.registry.get_builtin(tool_id) is not None:
            ui.info(f"{tool_id}\tbuilt-in")
            continue
        definition = resolved.merged_tools.get(tool_id) or {}
        mode = definition.get("mode") if isinstance(definition, dict) else None
        ui.info(f"{tool_id}\t{mode or MODE_NATIVE}")


@tools_app.command("show")
def tools_show(
    ctx: typer.Context,
    tool_id: str = typer.Argument(...),
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
    raw: bool = typer.Option(False, "--raw", help="Do not redact env values"),
) -> None:
    """Show a resolved tool definition."""
    services = _services(ctx)
    ui = services.ui
    tid = normalize_tool_id(tool_id)

    builtin = services.registry.get_builtin(tid)
    if builtin is not None:
        desc = describe_builtin(builtin)
        if as_json:
            ui.info(json.dumps({"id": desc.id, "kind": desc.kind, "capabilities": desc.capabilities}, indent=2))
            return
        ui.info(f"Tool: {desc.id} (built-in)")
        ui.info(f"Capabilities: {', '.join(desc.capabilities) or 'n/a'}")
        return

    with _errors():
        resolved = resolve_tools_for_cwd(services.env, Path.cwd())
        ws = resolve_tool_definition_with_sources(tid, resolved)
        if ws.merged is None:
            raise services.registry.unknown_tool_error(tid)

    def view(d: object) -> object:
        return d if raw else sanitize_tool_def(d)

    payload = {
        "id": tid,
        "kind": "configured",
        "merged": view(ws.merged),
        "sources": {
            "user": {"file": str(ws.user.file), "def": view(ws.user.definition)} if ws.user else None,
            "project": {"file": str(ws.project.file), "def": view(ws.project.definition)} if ws.project else None,
        },
    }
    if as_json:
        ui.info(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    ui.info(f"Tool: {tid} (configured)")
    if ws.user:
        ui.info(f"User: {ws.user.file}")
    if ws.project:
        ui.info(f"Project: {ws.project.file}")
    ui.info(json.dumps(payload["merged"], indent=2, ensure_ascii=False))


@tools_app.command("validate")
def tools_validate(ctx: typer.Context) -> None:
    """Validate tool config schema (built-ins always OK)."""
    services = _services(ctx)
    ui = services.ui
    with _errors():
        resolved = resolve_tools_for_cwd(services.env, Path.cwd())

    configured = sorted(resolved.merged_tools)
    if not configured:
        ui.info("No configured tools found.")
        return

    ok = True
    for tool_id in configured:
        r = validate_tool_def(tool_id, resolved.merged_tools[tool_id])
        ok = ok and r.ok
        for e in r.errors:
            ui.error(f"{tool_id}: error: {e}")
        for w in r.warnings:
            ui.warn(f"{tool_id}: warning: {w}")
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def resolve(
    ctx: typer.Context,
    tool_id: str = typer.Argument(...),
    cwd: Path | None = typer.Option(None, "--cwd", help="Resolve as if running from this directory"),
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
) -> None:
    """Resolve the effective account label for a tool in a directory."""
    services = _services(ctx)
    ui = services.ui
    where = (cwd or Path.cwd()).resolve()
    tid = normalize_tool_id(tool_id)

    with _errors():
        resolved = resolve_tools_for_cwd(services.env, where)
        if services.registry.get_builtin(tid) is None and tid not in resolved.merged_tools:
            raise ResolutionError(
                f"Unknown tool '{tid}'. (built-ins: {', '.join(services.registry.list_builtins()) or 'none'})"
            )

        key = tool_key_for_defaults(tid)
        account = resolved.default_account(tid)
        project_file = str(resolved.project_path) if resolved.project_path else None
        if not account:
            msg = f"No default account configured for '{tid}' ({key}). Set it in .accountbox.toml."
            if as_json:
                ui.info(json.dumps(
                    {"ok": False, "toolId": tid, "cwd": str(where), "accountKey": key, "error": msg, "projectConfig": project_file},
                    indent=2,
                ))
                raise typer.Exit(code=1)
            raise ResolutionError(msg)

    if as_json:
        git_root = find_git_root(where)
        ui.info(json.dumps(
            {
                "ok": True,
                "toolId": tid,
                "cwd": str(where),
                "gitRoot": str(git_root) if git_root else None,
                "projectConfig": project_file,
                "accountKey": key,
                "account": account,
            },
            indent=2,
        ))
        return
    ui.info(account)


@app.command("set")
def set_default(
    ctx: typer.Context,
    tool: str = typer.Argument(..., help="codex|claude|<toolId>"),
    account: str = typer.Argument(...),
) -> None:
    """Set per-project default account in .accountbox.toml (writes at repo root)."""
    with _errors():
        f = set_project_default(normalize_tool_id(tool), account, Path.cwd())
    _services(ctx).ui.info(f"Updated {f}")


@app.command()
def browser(
    ctx: typer.Context,
    account: str = typer.Argument(...),
    url: str = typer.Argument(...),
) -> None:
    """Open a URL in a sandboxed browser profile for an account (Chrome if available)."""
    services = _services(ctx)
    with _errors():
        BrowserOpener(services.env, services.runner).open(account, url)


@app.command()
def doctor(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
) -> None:
    """Show runtime status and key paths."""
    services = _services(ctx)
    with _errors():
        info = get_doctor_info(services, Path.cwd())
    if as_json:
        services.ui.info(json.dumps(info.to_dict(), indent=2, ensure_ascii=False))
        return
    for line in info.lines():
        services.ui.info(line)
