"""accountbox の例外。

CLI は `AccountboxError` を捕まえてメッセージだけ表示し exit 1 にする。
それ以外の例外（想定外の OSError 等）はそのまま伝播させる。
"""

from __future__ import annotations


class AccountboxError(RuntimeError):
    """利用者に見せてよいメッセージを持つエラーの基底。"""


class ConfigError(AccountboxError):
    """TOML が壊れている等、設定ファイルそのものの問題。"""


class ResolutionError(AccountboxError):
    """account / tool が解決できない。"""


class CredentialError(AccountboxError):
    """auth.json が無い / 読めない / パースできない。"""


class PortConflictError(AccountboxError):
    """ログイン用 callback ポートが使用中。"""


class RemoteError(AccountboxError):
    """usage endpoint の non-2xx / timeout / 非JSON。"""


class UnsupportedOperationError(AccountboxError):
    pass


class ProcessError(AccountboxError):
    """外部コマンドが見つからない、または非0で終了した。"""

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode
