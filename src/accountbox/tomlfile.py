"""TOML 読み込み（tomllib / Python < 3.11 は tomli）。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from accountbox.errors import ConfigError


@dataclass
class TomlDoc:
    """読み込んだ設定ファイル。file が None ならファイルは存在しなかった。"""

    file: Path | None = None
    data: dict[str, Any] = field(default_factory=dict)


def parse_toml(text: str, *, source: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse TOML in {source}: {e}") from e


def read_toml(path: Path | None) -> TomlDoc:
    if path is None or not path.is_file():
        return TomlDoc()
    return TomlDoc(file=path, data=parse_toml(path.read_text(encoding="utf-8"), source=path))
