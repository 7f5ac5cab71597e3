"""tools.toml の `[tools.<id>]` 定義のバリデーション。

`accountbox tools validate` から呼ぶ。実行時（dispatch）には呼ばない。
エラーと警告を分けて返し、例外にはしない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MODE_NATIVE = "native"
MODE_CONTAINER = "container"
TOOL_MODES = (MODE_NATIVE, MODE_CONTAINER)


@dataclass
class ToolValidation:
    tool_id: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0


def validate_tool_def(tool_id: str, definition: Any) -> ToolValidation:
    result = ToolValidation(tool_id=tool_id)
    errors = result.errors
    warnings = result.warnings

    if not isinstance(definition, dict):
        errors.append("tool definition must be a table")
        return result

    mode = definition.get("mode") or MODE_NATIVE
    if mode not in TOOL_MODES:
        errors.append(f"unsupported mode '{mode}' (use 'native' or 'container')")

    if mode == MODE_NATIVE:
        if not isinstance(definition.get("command"), str) or not definition.get("command"):
            errors.append("mode=native requires 'command' (string)")
        if "isolate" in definition and not isinstance(definition["isolate"], bool):
            errors.append("'isolate' must be boolean when provided")

    if mode == MODE_CONTAINER:
        if not isinstance(definition.get("image"), str) or not definition.get("image"):
            errors.append("mode=container requires 'image' (string)")
        for key in ("workdir", "configMountPath"):
            if key in definition and not isinstance(definition[key], str):
                errors.append(f"'{key}' must be string when provided")

    if "env" in definition:
        env = definition["env"]
        if not isinstance(env, dict):
            errors.append("'env' must be a table when provided")
        else:
            for k, v in env.items():
                if not isinstance(v, str):
                    warnings.append(f"env.{k} is not a string; it will be stringified for the process environment")

    return result
