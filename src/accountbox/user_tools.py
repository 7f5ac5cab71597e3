"""ユーザー全体の tools.toml。

探索順:
1. ACCOUNTBOX_TOOLS_TOML（指定されていればそのまま）
2. `$XDG_CONFIG_HOME/accountbox/tools.toml`
3. `~/.accountbox/tools.toml`（旧配置）

どれも無ければ 2 のパスを「まだ存在しない書き込み先」として返す。
"""

from __future__ import annotations

from pathlib import Path

from accountbox.env import AccountboxEnv


def resolve_user_tools_path(env: AccountboxEnv) -> Path:
    if env.tools_toml_override is not None:
        return env.tools_toml_override
    for candidate in (env.user_tools_toml_default, env.user_tools_toml_legacy):
        if candidate.is_file():
            return candidate
    return env.user_tools_toml_default

