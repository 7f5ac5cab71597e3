"""logging の初期化。

- 詳細ログ: `<ACCOUNTBOX_HOME>/logs/accountbox.log`（ローテーションあり）
- `ACCOUNTBOX_VERBOSE=1` のときは同じログを rich で stderr にも出す

利用者向けの画面出力は ui.py。ログにはトークン類を出さない（マスク済みの値だけ）。
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

from accountbox.ui import err_console

LOG_FILE_NAME = "accountbox.log"
LOG_MAX_BYTES = 2_000_000
LOG_BACKUP_COUNT = 3


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def setup_logging(*, log_dir: Path, level: str = "INFO", verbose: bool = False) -> None:
    # 1プロセス1回
    if getattr(setup_logging, "_configured", False):
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(_file_handler(log_dir))

    if verbose:
        root_logger.addHandler(RichHandler(console=err_console, show_path=False, markup=False))

    logging.getLogger("urllib3").setLevel(logging.WARNING)

    setup_logging._configured = True  # type: ignore[attr-defined]
