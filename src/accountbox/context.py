"""起動時に1回だけ部品を組み立てる。"""

from __future__ import annotations

from dataclasses import dataclass

from accountbox.browser import BrowserOpener
from accountbox.claude import ClaudeTool
from accountbox.codex import CodexTool
from accountbox.credentials import CredentialStore
from accountbox.docker import DockerClient
from accountbox.env import AccountboxEnv
from accountbox.lifecycle import CredentialLifecycle
from accountbox.limits import LimitsFanout, UsageFetcher
from accountbox.port_guard import PortGuard
from accountbox.process import ProcessRunner
from accountbox.registry import ToolRegistry
from accountbox.ui import ConsoleUi


@dataclass
class Services:
    env: AccountboxEnv
    ui: ConsoleUi
    runner: ProcessRunner
    docker: DockerClient
    store: CredentialStore
    lifecycle: CredentialLifecycle
    codex: CodexTool
    claude: ClaudeTool
    registry: ToolRegistry


def build_services(
    env: AccountboxEnv,
    *,
    runner: ProcessRunner | None = None,
    ui: ConsoleUi | None = None,
    fetcher: UsageFetcher | None = None,
) -> Services:
    runner = runner or ProcessRunner()
    ui = ui or ConsoleUi()

    docker = DockerClient(env, runner)
    store = CredentialStore(env)
    lifecycle = CredentialLifecycle(
        env=env,
        runner=runner,
        docker=docker,
        store=store,
        port_guard=PortGuard(docker, auto_stop=env.auto_stop_port),
        browser=BrowserOpener(env, runner),
        ui=ui,
    )
    codex = CodexTool(
        env=env,
        runner=runner,
        docker=docker,
        lifecycle=lifecycle,
        limits_fanout=LimitsFanout(store, fetcher),
        ui=ui,
    )
    claude = ClaudeTool(env=env, runner=runner)

    return Services(
        env=env,
        ui=ui,
        runner=runner,
        docker=docker,
        store=store,
        lifecycle=lifecycle,
        codex=codex,
        claude=claude,
        registry=ToolRegistry(env, [codex, claude]),
    )
