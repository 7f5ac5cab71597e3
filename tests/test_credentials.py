"""ホスト側 auth.json 管理のテスト。"""

import json

import pytest

from accountbox.credentials import CredentialStore, identity_from_auth
from accountbox.env import AccountboxEnv
from accountbox.errors import CredentialError
from conftest import make_auth, write_auth


def test_identity_from_auth() -> None:
    ident = identity_from_auth(make_auth(email="a@b.c", account_id="acct-1"))
    assert ident.auth_mode == "chatgpt"
    assert ident.email == "a@b.c"
    assert ident.access_token == "at-secret"
    assert ident.chatgpt_account_id == "acct-1"
    assert ident.plan_type == "plus"
    assert ident.organizations[0].title == "Personal"
    assert ident.organizations[0].is_default is True
    assert ident.has_api_key is False


def test_identity_from_api_key_auth() -> None:
    ident = identity_from_auth({"OPENAI_API_KEY": "sk-x"})
    assert ident.has_api_key is True
    assert ident.access_token is None
    assert ident.email is None


def test_read_auth_errors(ab_env: AccountboxEnv) -> None:
    store = CredentialStore(ab_env)
    with pytest.raises(CredentialError) as e:
        store.read_auth("work")
    assert "missing auth.json" in str(e.value)

    store.ensure_host_dir("work")
    store.auth_path("work").write_text("{broken", encoding="utf-8")
    with pytest.raises(CredentialError) as e:
        store.read_auth("work")
    assert "Failed to parse JSON" in str(e.value)


def test_logout_backup_is_not_repeated(ab_env: AccountboxEnv) -> None:
    store = CredentialStore(ab_env)
    write_auth(store.auth_path("work"), make_auth())

    first = store.backup_for_logout("work")
    assert first is not None
    assert ".logout-bak-" in first.name
    assert not store.has_credential("work")

    assert store.backup_for_logout("work") is None


def test_force_backup_suffix(ab_env: AccountboxEnv) -> None:
    store = CredentialStore(ab_env)
    write_auth(store.auth_path("work"), make_auth())
    bak = store.backup_for_force_login("work")
    assert bak is not None
    assert bak.name.startswith("auth.json.bak-")


def test_snapshots(ab_env: AccountboxEnv) -> None:
    store = CredentialStore(ab_env)
    with pytest.raises(CredentialError):
        store.save_snapshot("work", "snap")

    write_auth(store.auth_path("work"), make_auth(email="w@x.y"))
    dst = store.save_snapshot("work", "snap")
    assert dst == store.snapshot_auth_path("snap")

    store.apply_snapshot("snap", "other")
    assert json.loads(store.auth_path("other").read_text(encoding="utf-8")) == make_auth(email="w@x.y")

    with pytest.raises(CredentialError) as e:
        store.apply_snapshot("missing", "other")
    assert "Snapshot 'missing' not found" in str(e.value)


def test_list_accounts_and_snapshots(ab_env: AccountboxEnv) -> None:
    store = CredentialStore(ab_env)
    assert store.list_accounts() == []
    assert store.list_snapshots() == []

    write_auth(store.auth_path("zeta"), make_auth())
    store.ensure_host_dir("alpha")
    (store.snapshots_root / "empty").mkdir(parents=True)

    accounts = store.list_accounts()
    assert [a.label for a in accounts] == ["alpha", "zeta"]
    assert [a.has_credential for a in accounts] == [False, True]
    assert [(s.name, s.has_credential) for s in store.list_snapshots()] == [("empty", False)]
