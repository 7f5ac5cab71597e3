"""ログイン用 callback ポートの空き確認。

ブラウザログインでは codex がホスト側で 127.0.0.1:1455 を listen する。
そのため衝突は2種類ある:

1. Docker コンテナが port を publish している（docker ps で特定できる）
2. それ以外のプロセスが握っている（bind を試して判定）

2 は bind に失敗したら理由を問わず「使用中」とみなす。
"""

from __future__ import annotations

import logging
import socket

from accountbox.docker import DockerClient
from accountbox.errors import PortConflictError

log = logging.getLogger(__name__)

CODEX_LOGIN_CALLBACK_PORT = 1455


def can_bind_tcp_port(port: int, host: str = "127.0.0.1") -> bool:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((host, port))
    except OSError:
        return False
    return True


class PortGuard:
    def __init__(self, docker: DockerClient, *, auto_stop: bool = False, host: str = "127.0.0.1") -> None:
        self.docker = docker
        self.auto_stop = auto_stop
        self.host = host

    def ensure_free(self, port: int = CODEX_LOGIN_CALLBACK_PORT) -> None:
        containers = self.docker.containers_publishing(port)
        if containers:
            if self.auto_stop:
                for c in containers:
                    log.info("stopping container %s (%s) publishing port %s", c.name, c.id, port)
                    self.docker.stop(c.id)
                return

            details = "\n".join(f"- {c.name} ({c.id}) {c.ports}" for c in containers)
            raise PortConflictError(
                f"Port {port} is already published by Docker container(s):\n{details}\n"
                "Stop them (docker stop <id>) or set ACCOUNTBOX_CODEX_AUTO_STOP_PORT=1 "
                "to auto-stop during login."
            )

        if not can_bind_tcp_port(port, self.host):
            raise PortConflictError(
                f"Port {port} is already in use by another process. Free it, then retry login."
            )
