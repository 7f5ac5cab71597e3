"""doctor: 実行環境と主要パスの確認。

docker / claude が無い環境でも落ちずに結果を返す。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from accountbox.context import Services
from accountbox.errors import ProcessError
from accountbox.git import find_git_root
from accountbox.project import read_project_config
from accountbox.user_tools import resolve_user_tools_path

STATUS_OK = "OK"
STATUS_MISSING = "missing"
STATUS_NOT_REACHABLE = "NOT_REACHABLE"


@dataclass
class DoctorInfo:
    cwd: Path
    git_root: Path | None
    project_config: Path | None
    accountbox_home: Path
    user_tools_config: Path
    codex_image: str
    codex_npm_spec: str
    defaults: dict[str, str | None] = field(default_factory=dict)
    docker: str = STATUS_MISSING
    claude: str = STATUS_MISSING
    claude_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: (str(v) if isinstance(v, Path) else v) for k, v in asdict(self).items()}

    def lines(self) -> list[str]:
        docker = {STATUS_OK: "OK", STATUS_NOT_REACHABLE: "NOT REACHABLE"}.get(self.docker, "missing")
        return [
            f"cwd: {self.cwd}",
            f"git root: {self.git_root or 'n/a'}",
            f"project config: {self.project_config or 'n/a'}",
            f"default codex_account: {self.defaults.get('codex_account') or 'n/a'}",
            f"default claude_account: {self.defaults.get('claude_account') or 'n/a'}",
            f"accountbox home: {self.accountbox_home}",
            f"user tools config: {self.user_tools_config}",
            f"codex image: {self.codex_image} (npm spec: {self.codex_npm_spec})",
            f"docker runtime: {docker}",
            f"claude: {self.claude_version if self.claude == STATUS_OK else self.claude}",
        ]


def _docker_status(services: Services) -> str:
    if services.runner.which("docker") is None:
        return STATUS_MISSING
    try:
        services.docker.ping()
    except ProcessError:
        return STATUS_NOT_REACHABLE
    return STATUS_OK


def _claude_status(services: Services) -> tuple[str, str | None]:
    if services.runner.which("claude") is None:
        return STATUS_MISSING, None
    try:
        r = services.runner.capture(["claude", "--version"], timeout=30)
    except ProcessError:
        return STATUS_MISSING, None
    if r.returncode != 0:
        return "error", None
    return STATUS_OK, r.stdout.strip()


def get_doctor_info(services: Services, cwd: Path) -> DoctorInfo:
    env = services.env
    project = read_project_config(cwd)
    claude, claude_version = _claude_status(services)

    return DoctorInfo(
        cwd=cwd,
        git_root=find_git_root(cwd),
        project_config=project.file,
        accountbox_home=env.home,
        user_tools_config=resolve_user_tools_path(env),
        codex_image=env.codex_image,
        codex_npm_spec=env.codex_npm_spec,
        defaults={
            "codex_account": project.data.get("codex_account"),
            "claude_account": project.data.get("claude_account"),
        },
        docker=_docker_status(services),
        claude=claude,
        claude_version=claude_version,
    )
