"""Pytest configuration and shared fixtures for SecFlow."""
import asyncio
from typing import Dict, List, Optional, Tuple, Union

import pytest

from config.settings import Settings, StorageConfig, InstallConfig
from secflow.core.events import EventBus
from secflow.core.executor import ProcessExecutor
from secflow.core.installer import Installer
from secflow.core.orchestrator import SecFlowOrchestrator
from secflow.core.registry import ToolRegistry
from secflow.core.runner import WorkflowRunner
from secflow.core.store import WorkflowStore
from secflow.errors import ExecutionFailure
from secflow.models.installation import ExecutionResult


Scripted = Union[ExecutionResult, Exception]


class FakeExecutor(ProcessExecutor):
    """
    Executor scripted by command substring.

    Unscripted commands succeed. A gate, when set, holds every command
    until it is opened.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.script: Dict[str, Scripted] = {}
        self.gate: Optional[asyncio.Event] = None
        self.started = 0

    def when(self, fragment: str, result: Scripted) -> "FakeExecutor":
        self.script[fragment] = result
        return self

    def fail(self, fragment: str, exit_code: int = 1, stderr: str = "boom") -> "FakeExecutor":
        return self.when(fragment, ExecutionResult(exit_code=exit_code, stderr=stderr))

    def hold(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    async def execute(self, command, workdir=None):
        self.calls.append((command, str(workdir) if workdir else None))
        self.started += 1
        if self.gate is not None:
            await self.gate.wait()
        for fragment, result in self.script.items():
            if fragment in command:
                if isinstance(result, Exception):
                    raise result
                return result
        return ExecutionResult(exit_code=0, stdout=f"ran {command}")

    @property
    def commands(self) -> List[str]:
        return [c for c, _ in self.calls]


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def registry(events):
    return ToolRegistry(events=events)


@pytest.fixture
def store(events):
    return WorkflowStore(events=events)


@pytest.fixture
def installer(registry, executor, tmp_path):
    return Installer(registry, executor, {"tools_dir": tmp_path / "tools"})


@pytest.fixture
def runner(store, registry, executor, events):
    return WorkflowRunner(store, registry, executor, events=events)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        storage=StorageConfig(state_dir=tmp_path / "state"),
        install=InstallConfig(tools_dir=tmp_path / "tools"),
    )


@pytest.fixture
def orchestrator(settings, executor):
    return SecFlowOrchestrator(settings, executor=executor).init()


async def settle(times: int = 5) -> None:
    """Let background tasks advance."""
    for _ in range(times):
        await asyncio.sleep(0)


__all__ = ["FakeExecutor", "ExecutionFailure", "settle"]
