"""Docker 操作。

- Codex イメージの存在確認 / build
- `docker run` コマンドの組み立て（cwd を /work にマウント、account ごとの named volume）
- callback ポートを publish しているコンテナの列挙
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from accountbox.env import AccountboxEnv
from accountbox.errors import ProcessError
from accountbox.process import ProcessRunner

CODEX_CONFIG_DIR = "/root/.codex"
SYNC_FALLBACK_IMAGE = "alpine"


def codex_volume_name(account: str) -> str:
    return f"accountbox_codex_{account}"


def tool_volume_name(tool_id: str, account: str) -> str:
    return f"accountbox_{tool_id}_{account}"


@dataclass
class PublishedContainer:
    id: str
    name: str
    ports: str


class DockerClient:
    def __init__(self, env: AccountboxEnv, runner: ProcessRunner) -> None:
        self.env = env
        self.runner = runner

    def ping(self) -> None:
        """daemon に届かなければ ProcessError。"""
        r = self.runner.capture(["docker", "ps"])
        if r.returncode != 0:
            msg = r.stderr.strip() or "docker daemon is not reachable"
            raise ProcessError(msg, returncode=r.returncode)

    def image_exists(self, image: str) -> bool:
        try:
            r = self.runner.capture(["docker", "image", "inspect", image])
        except ProcessError:
            return False
        return r.returncode == 0

    def ensure_codex_image(self, *, force_rebuild: bool = False) -> None:
        self.ping()
        image = self.env.codex_image
        if not force_rebuild and self.image_exists(image):
            return

        dockerfile_dir = self.env.codex_dockerfile_dir
        self.runner.run(
            [
                "docker",
                "build",
                "-f",
                str(dockerfile_dir / "Dockerfile.codex"),
                "-t",
                image,
                "--build-arg",
                f"CODEX_NPM_SPEC={self.env.codex_npm_spec}",
                str(dockerfile_dir),
            ]
        )

    def tty_flags(self) -> list[str]:
        return ["-it"] if self.env.interactive else ["-i"]

    def codex_run_cmd(self, account: str, args: list[str], cwd: Path, *, tty: bool = True) -> list[str]:
        return [
            "docker",
            "run",
            "--rm",
            *(self.tty_flags() if tty else ["-i"]),
            "-v",
            f"{cwd}:/work",
            "-w",
            "/work",
            "-v",
            f"{codex_volume_name(account)}:{CODEX_CONFIG_DIR}",
            self.env.codex_image,
            *args,
        ]

    def sync_image(self) -> str:
        """auth.json のコピー用。Codex イメージがあれば流用し、無ければ alpine。"""
        image = self.env.codex_image
        return image if self.image_exists(image) else SYNC_FALLBACK_IMAGE

    def containers_publishing(self, port: int) -> list[PublishedContainer]:
        """port を publish している起動中コンテナ。docker が無い/動かない場合は空。"""
        try:
            r = self.runner.capture(
                [
                    "docker",
                    "ps",
                    "--filter",
                    f"publish={port}",
                    "--format",
                    "{{.ID}}\t{{.Names}}\t{{.Ports}}",
                ]
            )
        except ProcessError:
            return []
        if r.returncode != 0:
            return []

        out: list[PublishedContainer] = []
        for line in r.stdout.strip().splitlines():
            if not line.strip():
                continue
            cid, _, rest = line.partition("\t")
            name, _, ports = rest.partition("\t")
            out.append(PublishedContainer(id=cid, name=name, ports=ports))
        return out

    def stop(self, container_id: str) -> None:
        self.runner.run(["docker", "stop", container_id])
