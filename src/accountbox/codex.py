"""built-in: codex。

`accountbox codex [account] [args...]`

ヘルパー（先頭トークンで判定）:
    app / login / logout / status / whoami / limits / rebuild /
    list / snapshots / save / switch / use
それ以外は Docker コンテナ内の codex にそのまま渡す。
"""

from __future__ import annotations

import json
import time
from pathlib import Path

from accountbox.args import has_any, read_option_number
from accountbox.docker import DockerClient, codex_volume_name
from accountbox.env import AccountboxEnv
from accountbox.errors import AccountboxError, UnsupportedOperationError
from accountbox.fmt import sanitize_usage, usage_summary
from accountbox.lifecycle import (
    METHOD_API_KEY,
    METHOD_BROWSER,
    METHOD_DEVICE,
    CredentialLifecycle,
    LoginResult,
)
from accountbox.limits import (
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT_MS,
    LimitResult,
    LimitsFanout,
    clamp_concurrency,
)
from accountbox.process import ProcessRunner
from accountbox.project import set_project_default
from accountbox.ui import ConsoleUi

CODEX_HELPER_SUBCOMMANDS = frozenset(
    {
        "app",
        "login",
        "logout",
        "status",
        "whoami",
        "limits",
        "rebuild",
        "list",
        "snapshots",
        "save",
        "switch",
        "use",
    }
)

APP_QUIT_FLAGS = ["--quit", "--quit-first", "--restart"]


def _limit_payload(r: LimitResult, *, raw: bool) -> dict:
    out: dict = {"account": r.account, "ok": r.ok}
    if r.ok:
        out["usage"] = r.usage if raw else sanitize_usage(r.usage)
    else:
        out["error"] = r.error
    return out


class CodexTool:
    id = "codex"

    def __init__(
        self,
        *,
        env: AccountboxEnv,
        runner: ProcessRunner,
        docker: DockerClient,
        lifecycle: CredentialLifecycle,
        limits_fanout: LimitsFanout,
        ui: ConsoleUi,
    ) -> None:
        self.env = env
        self.runner = runner
        self.docker = docker
        self.lifecycle = lifecycle
        self.limits_fanout = limits_fanout
        self.ui = ui

    def run(self, account: str, args: list[str], cwd: Path) -> int:
        self.docker.ensure_codex_image()
        return self.runner.run(self.docker.codex_run_cmd(account, args, cwd), check=False)

    def login(self, account: str, args: list[str], cwd: Path) -> LoginResult:
        if has_any(args, ["api-key", "--api-key", "with-api-key", "--with-api-key"]):
            result = self.lifecycle.login(account, cwd=cwd, method=METHOD_API_KEY, api_key=self.env.openai_api_key)
            self.ui.info(f"Stored API key login for '{account}' in Docker volume {codex_volume_name(account)}.")
            return result

        wants_browser = has_any(args, ["browser", "--browser"])
        result = self.lifecycle.login(
            account,
            cwd=cwd,
            method=METHOD_BROWSER if wants_browser else METHOD_DEVICE,
            force=has_any(args, ["force", "--force"]),
            fresh_browser=has_any(args, ["fresh-browser", "--fresh-browser", "reset-browser", "--reset-browser"]),
            open_browser="--no-open" not in args,
        )
        self.ui.info(
            f"Synced {self.lifecycle.store.auth_path(account)} -> Docker volume {codex_volume_name(account)}."
        )
        return result

    def logout(self, account: str, cwd: Path) -> None:
        result = self.lifecycle.logout(account, cwd)
        if result.backup:
            self.ui.info(f"Moved host auth.json -> {result.backup}")

    def status(self, account: str, cwd: Path) -> int:
        return self.lifecycle.status(account, cwd)

    def whoami(self, account: str) -> None:
        for line in self.lifecycle.whoami(account).lines():
            self.ui.info(line)
        self.ui.info(
            "Tip: if this is the wrong OpenAI account, re-run login with: "
            "accountbox codex login --browser --force --fresh-browser"
        )

    def limits(self, account: str, args: list[str], *, all_accounts: bool = False) -> None:
        as_json = "--json" in args
        raw = "--raw" in args
        timeout_ms = max(1, int(read_option_number(args, "--timeout-ms", DEFAULT_TIMEOUT_MS)))
        concurrency = clamp_concurrency(read_option_number(args, "--concurrency", DEFAULT_CONCURRENCY))

        if all_accounts:
            labels = [a.label for a in self.lifecycle.list_accounts()]
            rows = self.limits_fanout.fetch_all(labels, timeout_ms=timeout_ms, concurrency=concurrency)
            if as_json:
                self.ui.info(json.dumps([_limit_payload(r, raw=raw) for r in rows], ensure_ascii=False, indent=2))
                return
            if not rows:
                self._no_accounts()
                return
            self.ui.info("Codex limits (ChatGPT wham/usage):")
            for r in rows:
                if r.ok:
                    self.ui.info(f"- {r.account}: {usage_summary(r.usage)}")
                else:
                    self.ui.info(f"- {r.account}: {r.error or 'unknown error'}")
            return

        r = self.limits_fanout.fetch_one(account, timeout_ms=timeout_ms)
        if as_json:
            self.ui.info(json.dumps(_limit_payload(r, raw=raw), ensure_ascii=False, indent=2))
            return
        if r.ok:
            self.ui.info(f"{account}: {usage_summary(r.usage)}")
        else:
            self.ui.info(f"{account}: {r.error}")

    # macOS の Codex.app

    def _app_bundle(self) -> Path | None:
        for c in (Path("/Applications/Codex.app"), self.env.user_home / "Applications" / "Codex.app"):
            if c.exists():
                return c
        return None

    def _app_running(self) -> bool:
        r = self.runner.capture(["osascript", "-e", 'application "Codex" is running'])
        return r.returncode == 0 and r.stdout.strip().lower() == "true"

    def app(self, account: str, args: list[str]) -> None:
        if self.env.platform != "darwin":
            raise UnsupportedOperationError("Codex app is macOS-only.")

        bundle = self._app_bundle()
        if bundle is None:
            raise AccountboxError(
                "Codex.app not found in /Applications or ~/Applications. Install the Codex app and retry."
            )
        binary = bundle / "Contents" / "MacOS" / "Codex"
        if not binary.exists():
            raise AccountboxError(f"Codex.app binary not found at {binary}.")

        if has_any(args, APP_QUIT_FLAGS):
            self.runner.capture(["osascript", "-e", 'tell application "Codex" to quit'])
            time.sleep(0.8)
        elif self._app_running():
            self.ui.info(
                "Note: Codex app is already running. To switch profiles, quit it first and re-run with: "
                "accountbox codex <label> app --quit"
            )

        codex_home = self.lifecycle.store.ensure_host_dir(account)
        app_args: list[str] = []
        user_data_dir = self.env.home / "codex-app" / account
        multi = "--multi" in args
        if multi:
            user_data_dir.mkdir(parents=True, exist_ok=True)
            app_args.append(f"--user-data-dir={user_data_dir}")

        child_env = dict(self.env.environ)
        child_env["CODEX_HOME"] = str(codex_home)
        self.runner.spawn_detached([str(binary), *app_args], env=child_env)
        suffix = f" and --user-data-dir={user_data_dir}" if multi else ""
        self.ui.info(f"Launched Codex app with CODEX_HOME={codex_home}{suffix}")

    def rebuild(self) -> None:
        self.docker.ensure_codex_image(force_rebuild=True)
        v = self.runner.capture(["docker", "run", "--rm", self.env.codex_image, "-V"])
        if v.returncode == 0:
            self.ui.info(v.stdout.strip())

    def _no_accounts(self) -> None:
        self.ui.info(f"No Codex accounts found under {self.lifecycle.store.accounts_root} yet.")

    def list(self) -> None:
        accounts = self.lifecycle.list_accounts()
        if not accounts:
            self._no_accounts()
            self.ui.info("Run: accountbox codex <account> login")
            return
        self.ui.info("Codex accounts:")
        for a in accounts:
            self.ui.info(f"- {a.label}{'' if a.has_credential else ' (no auth.json yet)'}")

    def snapshots(self) -> None:
        snaps = self.lifecycle.list_snapshots()
        if not snaps:
            self.ui.info(f"No Codex snapshots found under {self.lifecycle.store.snapshots_root} yet.")
            self.ui.info("Create one: accountbox codex <account> save <snapshotName>")
            return
        self.ui.info("Codex snapshots:")
        for s in snaps:
            self.ui.info(f"- {s.name}{'' if s.has_credential else ' (missing auth.json)'}")

    def save(self, account: str, args: list[str]) -> Path:
        """args は `save <snapshotName>`。"""
        snapshot_name = args[1] if len(args) > 1 else None
        if not snapshot_name:
            raise AccountboxError("Usage: accountbox codex <account> save <snapshotName>")
        dst = self.lifecycle.save(account, snapshot_name)
        self.ui.info(f"Saved snapshot '{snapshot_name}' from account '{account}' -> {dst}")
        return dst

    def switch(self, account: str | None, args: list[str], default_account: str) -> Path:
        """args は `switch <snapshotName> [toAccount]`。"""
        snapshot_name = args[1] if len(args) > 1 else None
        if not snapshot_name:
            raise AccountboxError("Usage: accountbox codex [account] switch <snapshotName> [toAccount]")
        to_account = (args[2] if len(args) > 2 else None) or account or default_account
        dst = self.lifecycle.switch(snapshot_name, to_account)
        self.ui.info(f"Applied snapshot '{snapshot_name}' -> account '{to_account}' ({dst}) and synced to Docker volume.")
        return dst

    def use(self, args: list[str], cwd: Path) -> Path:
        to_account = args[1] if len(args) > 1 else None
        if not to_account:
            raise AccountboxError("Usage: accountbox codex use <account> (writes .accountbox.toml in current repo)")
        f = set_project_default("codex", to_account, cwd)
        self.ui.info(f'Updated {f} (codex_account = "{to_account}")')
        return f
