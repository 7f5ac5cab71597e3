"""画面出力。

ドライバは `ConsoleUi` を受け取って出力する（テストでは記録用の ui に差し替える）。
ツール出力やパスに `[...]` が含まれるため rich markup は無効にしている。
"""

from __future__ import annotations

import sys

from rich.console import Console

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)


class ConsoleUi:
    def info(self, line: str) -> None:
        console.print(line, markup=False)

    def warn(self, line: str) -> None:
        err_console.print(line, markup=False, style="yellow")

    def error(self, line: str) -> None:
        err_console.print(line, markup=False, style="red")

    def raw(self, text: str) -> None:
        """子プロセスの出力をそのまま流す。"""
        sys.stdout.write(text)
        sys.stdout.flush()
