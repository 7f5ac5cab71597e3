"""ファイル操作の小物。"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path


def timestamp_for_filename(now: datetime | None = None) -> str:
    """`2025-01-31T12-34-56-789Z` 形式（ファイル名に使える ISO 風）。"""
    now = now or datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def backup_path(path: Path, suffix: str) -> Path:
    """`<path><suffix><ts>` を返す。既存ファイルと衝突したら `-1`, `-2`... を付ける。"""
    base = path.with_name(f"{path.name}{suffix}{timestamp_for_filename()}")
    candidate = base
    n = 1
    while candidate.exists():
        candidate = base.with_name(f"{base.name}-{n}")
        n += 1
    return candidate


def move_aside(path: Path, suffix: str) -> Path | None:
    """path が存在すれば backup 名へ rename して新しいパスを返す。無ければ None。"""
    if not path.exists():
        return None
    dst = backup_path(path, suffix)
    path.rename(dst)
    return dst
