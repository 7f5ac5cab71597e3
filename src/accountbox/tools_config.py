"""ユーザー設定とプロジェクト設定のマージ。

マージ方針（`merge_tool_tables`）:
- 同じ tool id がプロジェクト側にあれば、その定義でユーザー側を丸ごと置き換える
  （フィールド単位のマージはしない）
- 片側にしか無い id はそのまま残る
- 順序はユーザー側の id、続いてプロジェクトにしか無い id
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from accountbox.env import AccountboxEnv
from accountbox.project import read_project_config, tool_key_for_defaults
from accountbox.tomlfile import TomlDoc, read_toml
from accountbox.user_tools import resolve_user_tools_path


def _tools_table(data: Mapping[str, Any] | None) -> dict[str, Any]:
    tools = (data or {}).get("tools") or {}
    if not isinstance(tools, Mapping):
        return {}
    return dict(tools)


def merge_tool_tables(
    user: Mapping[str, Any] | None,
    project: Mapping[str, Any] | None,
) -> dict[str, Any]:
    merged: dict[str, Any] = dict(user or {})
    for tool_id, definition in (project or {}).items():
        merged[tool_id] = definition
    return merged


@dataclass
class ResolvedConfig:
    project: TomlDoc = field(default_factory=TomlDoc)
    user: TomlDoc = field(default_factory=TomlDoc)
    merged_tools: dict[str, Any] = field(default_factory=dict)
    # 無ければ書き込み先になるパス
    user_tools_path: Path | None = None

    @property
    def project_path(self) -> Path | None:
        return self.project.file

    @property
    def user_path(self) -> Path | None:
        return self.user_tools_path if self.user_tools_path is not None else self.user.file

    def default_account(self, tool_id: str) -> str | None:
        """プロジェクトの `<tool>_account`。無ければユーザー側の同名キー。"""
        key = tool_key_for_defaults(tool_id)
        for data in (self.project.data, self.user.data):
            value = data.get(key)
            if value:
                return str(value)
        return None

    def defaults(self) -> dict[str, Any]:
        """`resolve_account_or_throw` に渡す設定（プロジェクト優先）。"""
        out = {k: v for k, v in self.user.data.items() if k.endswith("_account")}
        out.update({k: v for k, v in self.project.data.items() if k.endswith("_account")})
        return out


def resolve_tools_for_cwd(env: AccountboxEnv, cwd: Path) -> ResolvedConfig:
    project = read_project_config(cwd)
    user_path = resolve_user_tools_path(env)
    user = read_toml(user_path)
    merged = merge_tool_tables(_tools_table(user.data), _tools_table(project.data))
    return ResolvedConfig(project=project, user=user, merged_tools=merged, user_tools_path=user_path)


@dataclass
class ToolSource:
    file: Path | None
    definition: dict[str, Any]


@dataclass
class ToolDefinitionWithSources:
    tool_id: str
    merged: dict[str, Any] | None
    user: ToolSource | None = None
    project: ToolSource | None = None


def resolve_tool_definition_with_sources(
    tool_id: str,
    resolved: ResolvedConfig,
) -> ToolDefinitionWithSources:
    user_def = _tools_table(resolved.user.data).get(tool_id)
    project_def = _tools_table(resolved.project.data).get(tool_id)

    merged = merge_tool_tables(
        {tool_id: user_def} if user_def is not None else None,
        {tool_id: project_def} if project_def is not None else None,
    ).get(tool_id)

    return ToolDefinitionWithSources(
        tool_id=tool_id,
        merged=dict(merged) if isinstance(merged, Mapping) else merged,
        user=ToolSource(resolved.user.file, dict(user_def)) if isinstance(user_def, Mapping) else None,
        project=ToolSource(resolved.project.file, dict(project_def)) if isinstance(project_def, Mapping) else None,
    )
