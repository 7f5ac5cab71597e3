"""設定ツール（native / container）の実行。

native + isolate:
    `<home>/tools/<tool>/<account>/{config,data,state}` を作り、
    XDG_CONFIG_HOME / XDG_DATA_HOME / XDG_STATE_HOME をそこへ向けて起動する。
container:
    cwd を workdir にマウント。configMountPath があれば account ごとの named volume も載せる。
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from accountbox.docker import DockerClient, tool_volume_name
from accountbox.env import AccountboxEnv
from accountbox.errors import ResolutionError
from accountbox.process import ProcessRunner
from accountbox.registry import ToolDefinition

XDG_SUBDIRS = {
    "XDG_CONFIG_HOME": "config",
    "XDG_DATA_HOME": "data",
    "XDG_STATE_HOME": "state",
}


def isolated_xdg_env(base: Path) -> dict[str, str]:
    """base 配下に config/data/state を作り、対応する XDG 変数を返す。"""
    out: dict[str, str] = {}
    for var, sub in XDG_SUBDIRS.items():
        d = base / sub
        d.mkdir(parents=True, exist_ok=True)
        out[var] = str(d)
    return out


def tool_state_dir(env: AccountboxEnv, tool_id: str, account: str) -> Path:
    return env.home / "tools" / tool_id / account


def build_native_env(
    env: AccountboxEnv,
    tool_id: str,
    account: str,
    *,
    isolate: bool,
    extra_env: Mapping[str, str],
) -> dict[str, str]:
    child_env = dict(env.environ)
    child_env.update({k: str(v) for k, v in extra_env.items()})
    if isolate:
        child_env.update(isolated_xdg_env(tool_state_dir(env, tool_id, account)))
    return child_env


def run_native_tool(
    env: AccountboxEnv,
    runner: ProcessRunner,
    tool: ToolDefinition,
    account: str,
    args: list[str],
    cwd: Path,
) -> int:
    if not tool.command:
        raise ResolutionError(f"Tool '{tool.id}' is native but missing 'command' in config.")
    child_env = build_native_env(env, tool.id, account, isolate=tool.isolate, extra_env=tool.env)
    return runner.run([tool.command, *args], cwd=cwd, env=child_env, check=False)


def build_container_cmd(
    docker: DockerClient,
    tool: ToolDefinition,
    account: str,
    args: list[str],
    cwd: Path,
) -> list[str]:
    if not tool.image:
        raise ResolutionError(f"Tool '{tool.id}' is container but missing 'image' in config.")
    mounts = ["-v", f"{cwd}:{tool.workdir}", "-w", tool.workdir]
    if tool.config_mount_path:
        mounts += ["-v", f"{tool_volume_name(tool.id, account)}:{tool.config_mount_path}"]

    env_args: list[str] = []
    for k, v in tool.env.items():
        env_args += ["-e", f"{k}={v}"]

    return [
        "docker",
        "run",
        "--rm",
        *docker.tty_flags(),
        *mounts,
        *env_args,
        tool.image,
        *args,
    ]


def run_container_tool(
    docker: DockerClient,
    runner: ProcessRunner,
    tool: ToolDefinition,
    account: str,
    args: list[str],
    cwd: Path,
) -> int:
    docker.ping()
    return runner.run(build_container_cmd(docker, tool, account, args, cwd), check=False)
