"""Codex 認証情報のライフサイクル。

1つの (codex, account) について auth.json は最大3か所にある:
ホストキャッシュ / Docker volume / スナップショット。

状態遷移:

    Absent --login--> Present(host) --sync--> Present(host+volume) --logout--> Absent

- login 成功後は必ず sync し、ホストと volume を同じバイト列にする
- logout は volume 側の codex logout とホスト側の退避（rename）を両方行う
- switch はスナップショットを任意の account に適用し、そのまま sync する
- api-key ログインは volume にしか書かれない（ホストに auth.json は無い）

同じ account に対する並行実行は想定しない（ロックはしない）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from accountbox.browser import BrowserOpener
from accountbox.credentials import (
    AUTH_FILE,
    AccountRecord,
    CredentialStore,
    SnapshotRecord,
    identity_from_auth,
)
from accountbox.docker import CODEX_CONFIG_DIR, DockerClient, codex_volume_name
from accountbox.env import AccountboxEnv
from accountbox.errors import AccountboxError, CredentialError, ProcessError
from accountbox.fmt import mask_email, mask_id
from accountbox.login_flow import BrowserOpenTrigger, resolve_host_codex
from accountbox.port_guard import CODEX_LOGIN_CALLBACK_PORT, PortGuard
from accountbox.process import ProcessRunner
from accountbox.ui import ConsoleUi

log = logging.getLogger(__name__)

METHOD_DEVICE = "device"
METHOD_BROWSER = "browser"
METHOD_API_KEY = "api-key"
LOGIN_METHODS = (METHOD_DEVICE, METHOD_BROWSER, METHOD_API_KEY)

# OS の keychain ではなく CODEX_HOME 配下のファイルに保存させる
FILE_STORE_CONFIG = ["--config", 'cli_auth_credentials_store="file"']

SYNC_SCRIPT = (
    f"set -e; mkdir -p {CODEX_CONFIG_DIR}; "
    f"cp /host/{AUTH_FILE} {CODEX_CONFIG_DIR}/{AUTH_FILE}; "
    f"chmod 600 {CODEX_CONFIG_DIR}/{AUTH_FILE}; "
    f"ls -la {CODEX_CONFIG_DIR}"
)


@dataclass
class LoginResult:
    account: str
    method: str
    backup: Path | None = None
    browser_profile_backup: Path | None = None
    opened_url: str | None = None
    status_code: int | None = None


@dataclass
class LogoutResult:
    account: str
    backup: Path | None
    container_returncode: int


@dataclass
class WhoamiInfo:
    """表示用。値はすべてマスク済み。"""

    account: str
    auth_path: Path
    auth_mode: str | None = None
    email: str | None = None
    subject: str | None = None
    account_id: str | None = None
    plan_type: str | None = None
    organizations: list[str] = field(default_factory=list)

    def lines(self) -> list[str]:
        out = [f"Account label: {self.account}"]
        if self.auth_mode:
            out.append(f"Auth mode: {self.auth_mode}")
        if self.email:
            out.append(f"Email: {self.email}")
        if self.subject:
            out.append(f"Subject: {self.subject}")
        if self.account_id:
            out.append(f"Account ID: {self.account_id}")
        if self.plan_type:
            out.append(f"ChatGPT plan: {self.plan_type}")
        if self.organizations:
            out.append("Organizations:")
            out.extend(f"- {o}" for o in self.organizations)
        out.append(f"Auth file: {self.auth_path}")
        return out


class CredentialLifecycle:
    def __init__(
        self,
        *,
        env: AccountboxEnv,
        runner: ProcessRunner,
        docker: DockerClient,
        store: CredentialStore,
        port_guard: PortGuard,
        browser: BrowserOpener,
        ui: ConsoleUi,
    ) -> None:
        self.env = env
        self.runner = runner
        self.docker = docker
        self.store = store
        self.port_guard = port_guard
        self.browser = browser
        self.ui = ui

    # login

    def login(
        self,
        account: str,
        *,
        cwd: Path,
        method: str = METHOD_DEVICE,
        force: bool = False,
        open_browser: bool = True,
        fresh_browser: bool = False,
        api_key: str | None = None,
    ) -> LoginResult:
        if method not in LOGIN_METHODS:
            raise AccountboxError(f"unsupported login method '{method}' (use {', '.join(LOGIN_METHODS)})")

        if method == METHOD_API_KEY:
            self.login_with_api_key(account, api_key, cwd)
            result = LoginResult(account=account, method=method)
            result.status_code = self._status_best_effort(account, cwd)
            return result

        result = LoginResult(account=account, method=method)
        self.store.ensure_host_dir(account)

        if force:
            result.backup = self.store.backup_for_force_login(account)
            if result.backup:
                self.ui.info(f"Moved existing auth.json -> {result.backup}")

        if method == METHOD_BROWSER:
            self.port_guard.ensure_free(CODEX_LOGIN_CALLBACK_PORT)
            if fresh_browser:
                result.browser_profile_backup = self.browser.reset_profile(account)
                if result.browser_profile_backup:
                    self.ui.info(f"Reset sandboxed browser profile: moved -> {result.browser_profile_backup}")

        result.opened_url = self._run_host_login(account, method=method, open_browser=open_browser)
        self.sync(account)
        result.status_code = self._status_best_effort(account, cwd)
        return result

    def _run_host_login(self, account: str, *, method: str, open_browser: bool) -> str | None:
        host_codex = resolve_host_codex(self.env, self.runner)
        if host_codex.kind == "npx":
            self.ui.info(f"Using npx to run Codex on host ({self.env.codex_host_npm_spec}).")

        child_env = dict(self.env.environ)
        child_env["CODEX_HOME"] = str(self.store.host_dir(account))
        # codex 自身にブラウザを開かせない（隔離プロファイルで開くため）
        child_env["BROWSER"] = self.env.browser or "/usr/bin/true"

        args = [*FILE_STORE_CONFIG, "login"]
        if method == METHOD_DEVICE:
            args.append("--device-auth")

        trigger = BrowserOpenTrigger(
            open_url=lambda url: self.browser.open(account, url),
            enabled=open_browser,
            on_error=self.ui.warn,
        )

        def on_line(line: str) -> None:
            self.ui.raw(line)
            trigger.feed(line)

        log.info("codex login start account=%s method=%s runner=%s", account, method, host_codex.kind)
        code = self.runner.stream([*host_codex.argv, *args], env=child_env, on_line=on_line)
        if code != 0:
            raise ProcessError(f"codex login exited with code {code}", returncode=code)
        log.info("codex login finished account=%s", account)
        return trigger.opened_url

    def login_with_api_key(self, account: str, api_key: str | None, cwd: Path) -> None:
        if not api_key:
            raise CredentialError(
                "OPENAI_API_KEY env var is required for api-key login. "
                "Example: OPENAI_API_KEY=... accountbox codex <account> login --api-key"
            )
        self.docker.ensure_codex_image()
        cmd = self.docker.codex_run_cmd(
            account,
            [*FILE_STORE_CONFIG, "login", "--with-api-key"],
            cwd,
            tty=False,
        )
        self.runner.run(cmd, input_text=f"{api_key}\n")
        log.info("codex api-key login finished account=%s", account)

    def _status_best_effort(self, account: str, cwd: Path) -> int | None:
        try:
            return self.status(account, cwd)
        except AccountboxError as e:
            log.warning("post-login status check failed account=%s: %s", account, e)
            return None

    # sync

    def sync(self, account: str) -> None:
        """ホストの auth.json を volume の /root/.codex/auth.json にそのままコピーする。"""
        self.docker.ping()

        host_auth = self.store.auth_path(account)
        if not host_auth.is_file():
            raise CredentialError(f"Expected {host_auth} but it was not found. Codex login may have failed.")

        image = self.docker.sync_image()
        self.runner.run(
            [
                "docker",
                "run",
                "--rm",
                "--entrypoint",
                "sh",
                "-v",
                f"{codex_volume_name(account)}:{CODEX_CONFIG_DIR}",
                "-v",
                f"{self.store.host_dir(account)}:/host:ro",
                image,
                "-c",
                SYNC_SCRIPT,
            ]
        )
        log.info("synced auth.json to volume account=%s image=%s", account, image)

    # logout / status

    def logout(self, account: str, cwd: Path) -> LogoutResult:
        self.docker.ensure_codex_image()
        code = self.runner.run(self.docker.codex_run_cmd(account, ["logout"], cwd), check=False)
        if code != 0:
            log.warning("container logout exited with code %s account=%s", code, account)

        # ホスト側の退避が「ログイン中かどうか」の正
        backup = self.store.backup_for_logout(account)
        if backup:
            log.info("moved host auth.json account=%s -> %s", account, backup)
        return LogoutResult(account=account, backup=backup, container_returncode=code)

    def status(self, account: str, cwd: Path) -> int:
        """`codex login status` の終了コード（非0は未ログインを意味するだけで例外にしない）。"""
        self.docker.ensure_codex_image()
        return self.runner.run(self.docker.codex_run_cmd(account, ["login", "status"], cwd), check=False)

    # introspection

    def whoami(self, account: str) -> WhoamiInfo:
        host_auth = self.store.auth_path(account)
        if not host_auth.is_file():
            raise CredentialError(
                f"No host Codex auth.json found for '{account}' ({host_auth}). "
                f"Run: accountbox codex {account} login (or --browser). "
                "If you used api-key login, credentials live only in the Docker volume; "
                f"use: accountbox codex {account} status."
            )

        ident = identity_from_auth(self.store.read_auth(account))
        orgs = []
        for o in ident.organizations:
            parts = [p for p in (mask_id(o.id, 8), o.title) if p]
            if o.role:
                parts.append(f"role={o.role}")
            if o.is_default:
                parts.append("default")
            orgs.append(" | ".join(parts))

        return WhoamiInfo(
            account=account,
            auth_path=host_auth,
            auth_mode=ident.auth_mode,
            email=mask_email(ident.email),
            subject=mask_id(ident.sub, 18),
            account_id=mask_id(ident.account_id, 12),
            plan_type=ident.plan_type,
            organizations=orgs,
        )

    # snapshots

    def save(self, account: str, snapshot_name: str) -> Path:
        return self.store.save_snapshot(account, snapshot_name)

    def switch(self, snapshot_name: str, to_account: str) -> Path:
        dst = self.store.apply_snapshot(snapshot_name, to_account)
        self.sync(to_account)
        return dst

    def list_accounts(self) -> list[AccountRecord]:
        return self.store.list_accounts()

    def list_snapshots(self) -> list[SnapshotRecord]:
        return self.store.list_snapshots()
