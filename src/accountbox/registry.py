"""ツールレジストリ。

- built-in: codex（コンテナ実行 + 認証ヘルパー群）, claude（ネイティブ実行）
- configured: tools.toml / .accountbox.toml の `[tools.<id>]`

### tools.toml

```toml
[tools.aider]
mode = "native"
command = "aider"
isolate = true
env = { AIDER_DARK_MODE = "1" }

[tools.gemini]
mode = "container"
image = "ghcr.io/example/gemini-cli:latest"
workdir = "/work"
configMountPath = "/root/.gemini"
```

同じ id の built-in があれば設定より built-in が優先される。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from accountbox.env import AccountboxEnv
from accountbox.errors import ResolutionError
from accountbox.tools_config import (
    ResolvedConfig,
    ToolDefinitionWithSources,
    resolve_tool_definition_with_sources,
    resolve_tools_for_cwd,
)
from accountbox.user_tools import resolve_user_tools_path
from accountbox.validate import MODE_CONTAINER, MODE_NATIVE

BUILTIN_CAPABILITIES = (
    "run",
    "login",
    "logout",
    "status",
    "whoami",
    "limits",
    "app",
    "rebuild",
    "list",
    "snapshots",
    "save",
    "switch",
    "use",
)


class BuiltinTool(Protocol):
    id: str


@dataclass
class ToolDefinition:
    id: str
    mode: str = MODE_NATIVE

    # native
    command: str | None = None
    isolate: bool = True
    env: dict[str, str] = field(default_factory=dict)

    # container
    image: str | None = None
    workdir: str = "/work"
    config_mount_path: str | None = None

    @classmethod
    def from_mapping(cls, tool_id: str, raw: dict[str, Any]) -> ToolDefinition:
        """dispatch 用の最低限のチェック付き変換。"""
        mode = str(raw.get("mode") or MODE_NATIVE)
        raw_env = raw.get("env")
        env = {str(k): str(v) for k, v in raw_env.items()} if isinstance(raw_env, dict) else {}

        if mode == MODE_NATIVE:
            command = raw.get("command")
            if not command:
                raise ResolutionError(f"Tool '{tool_id}' is native but missing 'command' in config.")
            return cls(
                id=tool_id,
                mode=mode,
                command=str(command),
                isolate=raw.get("isolate") is not False,
                env=env,
            )

        if mode == MODE_CONTAINER:
            image = raw.get("image")
            if not image:
                raise ResolutionError(f"Tool '{tool_id}' is container but missing 'image' in config.")
            mount = raw.get("configMountPath")
            return cls(
                id=tool_id,
                mode=mode,
                image=str(image),
                workdir=str(raw.get("workdir") or "/work"),
                config_mount_path=str(mount) if mount else None,
                env=env,
            )

        raise ResolutionError(f"Tool '{tool_id}' has unsupported mode '{mode}'. Use 'native' or 'container'.")


def sanitize_tool_def(definition: Any) -> Any:
    """env の値を `***` に伏せたコピー。"""
    if not isinstance(definition, dict):
        return definition
    out = dict(definition)
    env = out.get("env")
    if isinstance(env, dict):
        out["env"] = {k: (v if v is None else ("***" if str(v) else "")) for k, v in env.items()}
    return out


@dataclass
class BuiltinDescription:
    id: str
    kind: str
    capabilities: list[str]


def describe_builtin(tool: BuiltinTool) -> BuiltinDescription:
    caps = [c for c in BUILTIN_CAPABILITIES if callable(getattr(tool, c, None))]
    return BuiltinDescription(id=tool.id, kind="built-in", capabilities=caps)


@dataclass
class ConfiguredTool:
    tool_id: str
    resolved: ResolvedConfig
    definition: dict[str, Any] | None
    with_sources: ToolDefinitionWithSources


class ToolRegistry:
    def __init__(self, env: AccountboxEnv, builtins: list[BuiltinTool]) -> None:
        self.env = env
        self._builtins = {t.id: t for t in builtins}

    def get_builtin(self, tool_id: str) -> BuiltinTool | None:
        return self._builtins.get(tool_id)

    def list_builtins(self) -> list[str]:
        return sorted(self._builtins)

    def list_tool_ids_for_cwd(self, cwd: Path) -> list[str]:
        resolved = resolve_tools_for_cwd(self.env, cwd)
        return sorted(set(resolved.merged_tools) | set(self._builtins))

    def resolve_configured_tool(self, tool_id: str, cwd: Path) -> ConfiguredTool:
        resolved = resolve_tools_for_cwd(self.env, cwd)
        definition = resolved.merged_tools.get(tool_id)
        return ConfiguredTool(
            tool_id=tool_id,
            resolved=resolved,
            definition=definition if isinstance(definition, dict) else None,
            with_sources=resolve_tool_definition_with_sources(tool_id, resolved),
        )

    def unknown_tool_error(self, tool_id: str) -> ResolutionError:
        return ResolutionError(
            f"Unknown tool '{tool_id}'. Define it in {resolve_user_tools_path(self.env)} under [tools.{tool_id}] "
            f"(or set ACCOUNTBOX_TOOLS_TOML), or in .accountbox.toml under [tools.{tool_id}]."
        )
