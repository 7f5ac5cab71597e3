"""外部プロセス実行。

docker / codex / claude / ブラウザ等の起動はすべてここを通す。
テストではこのクラスを差し替えて、実際のコマンドは叩かない。
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from accountbox.errors import ProcessError


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""


def _not_found(cmd: Sequence[str]) -> ProcessError:
    return ProcessError(f"command not found: {cmd[0]}")


class ProcessRunner:
    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        check: bool = True,
    ) -> int:
        """stdio を引き継いで実行する（input_text があれば stdin に流す）。"""
        try:
            proc = subprocess.run(
                list(cmd),
                cwd=cwd,
                env=dict(env) if env is not None else None,
                input=input_text,
                text=True if input_text is not None else None,
                check=False,
            )
        except FileNotFoundError as e:
            raise _not_found(cmd) from e

        if check and proc.returncode != 0:
            raise ProcessError(
                f"{cmd[0]} exited with code {proc.returncode}",
                returncode=proc.returncode,
            )
        return proc.returncode

    def capture(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """出力を取り込んで実行する。非0でも例外にしない。"""
        try:
            proc = subprocess.run(
                list(cmd),
                cwd=cwd,
                env=dict(env) if env is not None else None,
                text=True,
                encoding="utf-8",
                errors="replace",
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise _not_found(cmd) from e
        return CommandResult(
            returncode=int(proc.returncode),
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )

    def stream(
        self,
        cmd: Sequence[str],
        *,
        on_line: Callable[[str], None],
        env: Mapping[str, str] | None = None,
    ) -> int:
        """stdout/stderr をまとめて1行ずつ on_line に渡し、終了コードを返す。"""
        try:
            proc = subprocess.Popen(
                list(cmd),
                env=dict(env) if env is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise _not_found(cmd) from e

        with proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                on_line(line)
        return int(proc.returncode)

    def spawn_detached(self, cmd: Sequence[str], *, env: Mapping[str, str] | None = None) -> None:
        try:
            subprocess.Popen(
                list(cmd),
                env=dict(env) if env is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            raise _not_found(cmd) from e

    def which(self, name: str) -> str | None:
        return shutil.which(name)
