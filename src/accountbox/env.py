"""env: プロセス起動時に一度だけ組み立てる実行環境設定。

環境変数はここでだけ読む。各コンポーネントは `AccountboxEnv` を受け取り、
`os.environ` を直接参照しない。

主な環境変数:
- ACCOUNTBOX_HOME: 状態ディレクトリ（既定 `~/.accountbox`）
- ACCOUNTBOX_TOOLS_TOML: ユーザー tools.toml の明示パス
- ACCOUNTBOX_CODEX_IMAGE_NAME / ACCOUNTBOX_CODEX_NPM_SPEC / ACCOUNTBOX_CODEX_HOST_NPM_SPEC
- ACCOUNTBOX_CODEX_DOCKERFILE_DIR
- ACCOUNTBOX_CODEX_AUTO_STOP_PORT=1: ログイン時にポートを塞ぐコンテナを自動停止
- ACCOUNTBOX_LOG_LEVEL / ACCOUNTBOX_VERBOSE=1（ログを stderr にも出す）
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CODEX_IMAGE_NAME = "accountbox-codex"
DEFAULT_CODEX_NPM_SPEC = "@openai/codex@latest"

# Dockerfile.codex を置くディレクトリ（リポジトリルート）
PROJECT_ROOT = Path(__file__).resolve().parents[2]


@dataclass
class AccountboxEnv:
    home: Path
    xdg_config_home: Path
    tools_toml_override: Path | None = None

    codex_image_name: str = DEFAULT_CODEX_IMAGE_NAME
    codex_npm_spec: str = DEFAULT_CODEX_NPM_SPEC
    codex_host_npm_spec: str = DEFAULT_CODEX_NPM_SPEC
    codex_dockerfile_dir: Path = PROJECT_ROOT

    auto_stop_port: bool = False
    openai_api_key: str | None = None
    browser: str | None = None
    log_level: str = "INFO"
    verbose: bool = False

    interactive: bool = False  # stdin/stdout が両方 TTY
    platform: str = sys.platform
    user_home: Path = field(default_factory=Path.home)

    # 子プロセスへ引き継ぐ環境
    environ: dict[str, str] = field(default_factory=dict)

    @property
    def codex_image(self) -> str:
        return f"{self.codex_image_name}:latest"

    @property
    def user_tools_toml_default(self) -> Path:
        if self.tools_toml_override is not None:
            return self.tools_toml_override
        return self.xdg_config_home / "accountbox" / "tools.toml"

    @property
    def user_tools_toml_legacy(self) -> Path:
        return self.home / "tools.toml"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"


def _flag(value: str | None) -> bool:
    return (value or "").strip() == "1"


def load_env(
    environ: Mapping[str, str] | None = None,
    *,
    interactive: bool | None = None,
) -> AccountboxEnv:
    """環境変数から `AccountboxEnv` を作る。environ 省略時は os.environ。"""
    if environ is None:
        environ = os.environ
    env = dict(environ)

    user_home = Path(env["HOME"]) if env.get("HOME") else Path.home()
    home = Path(env["ACCOUNTBOX_HOME"]) if env.get("ACCOUNTBOX_HOME") else user_home / ".accountbox"
    xdg = Path(env["XDG_CONFIG_HOME"]) if env.get("XDG_CONFIG_HOME") else user_home / ".config"
    override = env.get("ACCOUNTBOX_TOOLS_TOML") or None

    npm_spec = env.get("ACCOUNTBOX_CODEX_NPM_SPEC") or DEFAULT_CODEX_NPM_SPEC
    dockerfile_dir = env.get("ACCOUNTBOX_CODEX_DOCKERFILE_DIR")

    if interactive is None:
        interactive = sys.stdin.isatty() and sys.stdout.isatty()

    return AccountboxEnv(
        home=home,
        xdg_config_home=xdg,
        tools_toml_override=Path(override) if override else None,
        codex_image_name=env.get("ACCOUNTBOX_CODEX_IMAGE_NAME") or DEFAULT_CODEX_IMAGE_NAME,
        codex_npm_spec=npm_spec,
        codex_host_npm_spec=env.get("ACCOUNTBOX_CODEX_HOST_NPM_SPEC") or npm_spec,
        codex_dockerfile_dir=Path(dockerfile_dir) if dockerfile_dir else PROJECT_ROOT,
        auto_stop_port=_flag(env.get("ACCOUNTBOX_CODEX_AUTO_STOP_PORT")),
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        browser=env.get("BROWSER") or None,
        log_level=env.get("ACCOUNTBOX_LOG_LEVEL") or "INFO",
        verbose=_flag(env.get("ACCOUNTBOX_VERBOSE")),
        interactive=bool(interactive),
        user_home=user_home,
        environ=env,
    )
