from __future__ import annotations

import base64
import json
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from accountbox.context import Services, build_services
from accountbox.docker import CODEX_CONFIG_DIR
from accountbox.env import AccountboxEnv, load_env
from accountbox.errors import ProcessError
from accountbox.process import CommandResult, ProcessRunner
from accountbox.ui import ConsoleUi

AUTH_URL = "https://auth.openai.com/oauth/authorize?client_id=app_x&state=abc"

HOST_MOUNT_SUFFIX = ":/host:ro"


def b64url(obj: dict[str, Any]) -> str:
    return base64.urlsafe_b64encode(json.dumps(obj).encode("utf-8")).decode("ascii").rstrip("=")


def make_auth(
    *,
    email: str = "roshan@example.com",
    account_id: str = "acct-1234567890abcdef",
    access_token: str = "at-secret",
    plan: str = "plus",
) -> dict[str, Any]:
    payload = {
        "email": email,
        "sub": "auth0|abcdefghijklmnopqrstuvwxyz",
        "https://api.openai.com/auth": {
            "chatgpt_account_id": account_id,
            "chatgpt_plan_type": plan,
            "organizations": [
                {"id": "org-1234567890", "title": "Personal", "role": "owner", "is_default": True},
            ],
        },
    }
    return {
        "auth_mode": "chatgpt",
        "tokens": {
            "id_token": f"{b64url({'alg': 'none'})}.{b64url(payload)}.sig",
            "access_token": access_token,
            "account_id": account_id,
        },
    }


class FakeRunner(ProcessRunner):
    """docker / codex を叩かずに呼び出しを記録する。

    - named volume は `volumes`（volume 名 -> auth.json のバイト列）で模擬する
    - stream（ホストの codex login）は CODEX_HOME に `login_auth` を書く
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self.envs: list[Mapping[str, str] | None] = []
        self.spawned: list[list[str]] = []
        self.volumes: dict[str, bytes] = {}
        self.images: set[str] = set()
        self.available: set[str] = {"docker", "codex"}
        self.docker_up = True
        self.published = ""
        self.login_auth: dict[str, Any] = make_auth()
        self.login_lines: list[str] = [
            "Starting local login server on http://localhost:1455.\n",
            "If your browser did not open, navigate to this URL to authenticate:\n",
            f"{AUTH_URL}\n",
            "Successfully logged in\n",
        ]
        self.login_returncode = 0
        self.logout_returncode = 0

    # helpers

    def calls_starting(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if c[: len(prefix)] == list(prefix)]

    @staticmethod
    def _mounts(cmd: Sequence[str]) -> list[str]:
        return [cmd[i + 1] for i, a in enumerate(cmd[:-1]) if a == "-v"]

    def _codex_volume(self, cmd: Sequence[str]) -> str | None:
        for m in self._mounts(cmd):
            if m.endswith(f":{CODEX_CONFIG_DIR}"):
                return m[: -len(f":{CODEX_CONFIG_DIR}")]
        return None

    def _docker_run(self, cmd: Sequence[str], input_text: str | None) -> int:
        volume = self._codex_volume(cmd)
        host = next((m for m in self._mounts(cmd) if m.endswith(HOST_MOUNT_SUFFIX)), None)

        if host is not None and volume is not None:
            src = Path(host[: -len(HOST_MOUNT_SUFFIX)]) / "auth.json"
            self.volumes[volume] = src.read_bytes()
            return 0
        if "--with-api-key" in cmd and volume is not None:
            key = (input_text or "").strip()
            self.volumes[volume] = json.dumps({"OPENAI_API_KEY": key}).encode("utf-8")
            return 0
        if list(cmd[-1:]) == ["logout"] and volume is not None:
            self.volumes.pop(volume, None)
            return self.logout_returncode
        if list(cmd[-2:]) == ["login", "status"] and volume is not None:
            return 0 if volume in self.volumes else 1
        return 0

    # ProcessRunner

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        check: bool = True,
    ) -> int:
        cmd = list(cmd)
        self.calls.append(cmd)
        self.inputs.append(input_text)
        self.envs.append(env)

        code = 0
        if cmd[:2] == ["docker", "build"]:
            self.images.add(cmd[cmd.index("-t") + 1])
        elif cmd[:2] == ["docker", "run"]:
            code = self._docker_run(cmd, input_text)

        if check and code != 0:
            raise ProcessError(f"{cmd[0]} exited with code {code}", returncode=code)
        return code

    def capture(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        cmd = list(cmd)
        self.calls.append(cmd)
        if cmd[0] == "docker" and not self.docker_up:
            return CommandResult(returncode=1, stderr="Cannot connect to the Docker daemon")
        if cmd[:3] == ["docker", "image", "inspect"]:
            return CommandResult(returncode=0 if cmd[3] in self.images else 1)
        if cmd[:3] == ["docker", "ps", "--filter"]:
            return CommandResult(returncode=0, stdout=self.published)
        if cmd == ["claude", "--version"]:
            return CommandResult(returncode=0, stdout="1.0.0 (Claude Code)\n")
        return CommandResult(returncode=0)

    def stream(
        self,
        cmd: Sequence[str],
        *,
        on_line: Callable[[str], None],
        env: Mapping[str, str] | None = None,
    ) -> int:
        self.calls.append(list(cmd))
        self.envs.append(env)
        assert env is not None
        if self.login_returncode == 0:
            codex_home = Path(env["CODEX_HOME"])
            codex_home.mkdir(parents=True, exist_ok=True)
            (codex_home / "auth.json").write_text(json.dumps(self.login_auth, indent=2), encoding="utf-8")
        for line in self.login_lines:
            on_line(line)
        return self.login_returncode

    def spawn_detached(self, cmd: Sequence[str], *, env: Mapping[str, str] | None = None) -> None:
        self.spawned.append(list(cmd))

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.available else None


class RecordingUi(ConsoleUi):
    def __init__(self) -> None:
        self.lines: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.raw_text: list[str] = []

    def info(self, line: str) -> None:
        self.lines.append(line)

    def warn(self, line: str) -> None:
        self.warnings.append(line)

    def error(self, line: str) -> None:
        self.errors.append(line)

    def raw(self, text: str) -> None:
        self.raw_text.append(text)


@pytest.fixture()
def ab_env(tmp_path: Path) -> AccountboxEnv:
    """tmp_path 配下を HOME / ACCOUNTBOX_HOME にした環境。"""
    home = tmp_path / "home"
    home.mkdir()
    env = load_env(
        {"HOME": str(home), "ACCOUNTBOX_HOME": str(home / ".accountbox"), "PATH": "/usr/bin:/bin"},
        interactive=False,
    )
    env.platform = "linux"
    return env


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def ui() -> RecordingUi:
    return RecordingUi()


@pytest.fixture()
def services(ab_env: AccountboxEnv, runner: FakeRunner, ui: RecordingUi) -> Services:
    return build_services(ab_env, runner=runner, ui=ui)


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    """`.git` ディレクトリだけを持つ最小の git リポジトリ。"""
    r = tmp_path / "repo"
    (r / ".git").mkdir(parents=True)
    return r


def write_auth(path: Path, obj: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj), encoding="utf-8")
    return path
