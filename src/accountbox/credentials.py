"""Codex のホスト側 auth.json 管理。

配置:
- `<home>/codex/<account>/auth.json`          ホストキャッシュ（ログインで書かれる正本）
- `<home>/codex-snapshots/<name>/auth.json`   スナップショット

退避ファイル:
- `auth.json.bak-<ts>`         `login --force` 時
- `auth.json.logout-bak-<ts>`  logout 時

どちらも削除はせず rename で残す。Docker volume 側はこのモジュールでは触らない（lifecycle.py）。
"""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from accountbox.env import AccountboxEnv
from accountbox.errors import CredentialError
from accountbox.fmt import decode_jwt_payload
from accountbox.fsutil import move_aside

AUTH_FILE = "auth.json"
FORCE_BACKUP_SUFFIX = ".bak-"
LOGOUT_BACKUP_SUFFIX = ".logout-bak-"
OPENAI_AUTH_CLAIM = "https://api.openai.com/auth"


@dataclass
class AccountRecord:
    label: str
    has_credential: bool
    auth_path: Path


@dataclass
class SnapshotRecord:
    name: str
    has_credential: bool
    auth_path: Path


@dataclass
class Organization:
    id: str | None = None
    title: str | None = None
    role: str | None = None
    is_default: bool = False


@dataclass
class CodexIdentity:
    """auth.json と id_token から取り出した情報（生の値。表示前にマスクすること）。"""

    auth_mode: str | None = None
    access_token: str | None = None
    account_id: str | None = None
    email: str | None = None
    sub: str | None = None
    chatgpt_account_id: str | None = None
    plan_type: str | None = None
    organizations: list[Organization] = field(default_factory=list)
    has_api_key: bool = False


def _str_or_none(v: Any) -> str | None:
    if v is None or v == "":
        return None
    return str(v)


def identity_from_auth(obj: dict[str, Any]) -> CodexIdentity:
    tokens = obj.get("tokens") or {}
    if not isinstance(tokens, dict):
        tokens = {}
    payload = decode_jwt_payload(tokens.get("id_token")) or {}
    claim = payload.get(OPENAI_AUTH_CLAIM) or {}
    if not isinstance(claim, dict):
        claim = {}

    orgs: list[Organization] = []
    for o in claim.get("organizations") or []:
        if not isinstance(o, dict):
            continue
        title = o.get("title")
        orgs.append(
            Organization(
                id=o.get("id") if isinstance(o.get("id"), str) else None,
                title=title.strip() if isinstance(title, str) and title.strip() else None,
                role=o.get("role") if isinstance(o.get("role"), str) else None,
                is_default=o.get("is_default") is True,
            )
        )

    account_id = _str_or_none(tokens.get("account_id"))
    return CodexIdentity(
        auth_mode=_str_or_none(obj.get("auth_mode")),
        access_token=_str_or_none(tokens.get("access_token")),
        account_id=account_id,
        email=payload.get("email") if isinstance(payload.get("email"), str) else None,
        sub=payload.get("sub") if isinstance(payload.get("sub"), str) else None,
        chatgpt_account_id=_str_or_none(claim.get("chatgpt_account_id")) or account_id,
        plan_type=_str_or_none(claim.get("chatgpt_plan_type")),
        organizations=orgs,
        has_api_key=bool(obj.get("OPENAI_API_KEY")),
    )


class CredentialStore:
    def __init__(self, env: AccountboxEnv) -> None:
        self.env = env

    # paths
    @property
    def accounts_root(self) -> Path:
        return self.env.home / "codex"

    @property
    def snapshots_root(self) -> Path:
        return self.env.home / "codex-snapshots"

    def host_dir(self, account: str) -> Path:
        return self.accounts_root / account

    def auth_path(self, account: str) -> Path:
        return self.host_dir(account) / AUTH_FILE

    def snapshot_auth_path(self, name: str) -> Path:
        return self.snapshots_root / name / AUTH_FILE

    def has_credential(self, account: str) -> bool:
        return self.auth_path(account).is_file()

    def ensure_host_dir(self, account: str) -> Path:
        d = self.host_dir(account)
        d.mkdir(parents=True, exist_ok=True)
        return d

    def read_auth(self, account: str) -> dict[str, Any]:
        p = self.auth_path(account)
        if not p.is_file():
            raise CredentialError(f"missing auth.json ({p})")
        try:
            obj = json.loads(p.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CredentialError(f"Failed to parse JSON at {p}.") from e
        if not isinstance(obj, dict):
            raise CredentialError(f"Failed to parse JSON at {p}.")
        return obj

    def backup_for_force_login(self, account: str) -> Path | None:
        return move_aside(self.auth_path(account), FORCE_BACKUP_SUFFIX)

    def backup_for_logout(self, account: str) -> Path | None:
        return move_aside(self.auth_path(account), LOGOUT_BACKUP_SUFFIX)

    def save_snapshot(self, from_account: str, snapshot_name: str) -> Path:
        src = self.auth_path(from_account)
        if not src.is_file():
            raise CredentialError(f"No auth.json for account '{from_account}' at {src}. Login first.")
        dst = self.snapshot_auth_path(snapshot_name)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)
        return dst

    def apply_snapshot(self, snapshot_name: str, to_account: str) -> Path:
        """スナップショットを to_account のホストキャッシュへコピーする（volume 同期は呼び出し側）。"""
        src = self.snapshot_auth_path(snapshot_name)
        if not src.is_file():
            raise CredentialError(f"Snapshot '{snapshot_name}' not found at {src}.")
        self.ensure_host_dir(to_account)
        dst = self.auth_path(to_account)
        shutil.copyfile(src, dst)
        return dst

    def list_accounts(self) -> list[AccountRecord]:
        root = self.accounts_root
        if not root.is_dir():
            return []
        records = [
            AccountRecord(label=d.name, has_credential=self.has_credential(d.name), auth_path=self.auth_path(d.name))
            for d in root.iterdir()
            if d.is_dir()
        ]
        return sorted(records, key=lambda r: r.label)

    def list_snapshots(self) -> list[SnapshotRecord]:
        root = self.snapshots_root
        if not root.is_dir():
            return []
        records = []
        for d in root.iterdir():
            if not d.is_dir():
                continue
            p = self.snapshot_auth_path(d.name)
            records.append(SnapshotRecord(name=d.name, has_credential=p.is_file(), auth_path=p))
        return sorted(records, key=lambda r: r.name)
