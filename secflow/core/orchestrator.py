"""
SecFlow orchestrator - the operations the presentation layer calls.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from config.settings import Settings
from ..errors import InvalidState
from ..models.installation import InstallationResult
from ..models.run import WorkflowRunReport
from ..models.tool import InstallMethod, Tool, ToolSpec, ToolStatus
from ..models.workflow import Workflow, WorkflowStep
from .events import Event, EventBus
from .executor import ProcessExecutor, SubprocessExecutor
from .installer import Installer
from .registry import ToolRegistry
from .runner import WorkflowRunner
from .state import StateRepository
from .store import WorkflowStore


class SecFlowOrchestrator:
    """Owns the process-wide registries and wires them to one executor."""

    def __init__(self,
                 settings: Optional[Settings] = None,
                 executor: Optional[ProcessExecutor] = None):
        """
        Initialize the orchestrator.

        Args:
            settings: Application settings
            executor: Process executor; defaults to a SubprocessExecutor built from settings
        """
        self.logger = logging.getLogger(__name__)
        self.settings = settings or Settings()
        self.executor = executor or SubprocessExecutor(self.settings.executor.model_dump())
        self.events = EventBus()

        self.state: Optional[StateRepository] = None
        self.registry: Optional[ToolRegistry] = None
        self.store: Optional[WorkflowStore] = None
        self.installer: Optional[Installer] = None
        self.runner: Optional[WorkflowRunner] = None

    def init(self) -> "SecFlowOrchestrator":
        """Create the registries, loading persisted state if enabled."""
        if self.initialized:
            return self

        if self.settings.storage.persist:
            self.state = StateRepository(self.settings.storage.state_dir)

        self.registry = ToolRegistry(events=self.events, state=self.state)
        self.store = WorkflowStore(events=self.events, state=self.state)
        self.installer = Installer(
            self.registry, self.executor, self.settings.install.model_dump()
        )
        self.runner = WorkflowRunner(
            self.store, self.registry, self.executor,
            events=self.events, state=self.state, workdir_for=self._tool_workdir
        )
        self.logger.info(
            f"SecFlow initialized: {len(self.registry)} tools, {len(self.store.list())} workflows"
        )
        return self

    @property
    def initialized(self) -> bool:
        return self.registry is not None

    # Tools

    def register_tool(self,
                      source_reference: str,
                      install_method: Union[InstallMethod, str] = InstallMethod.GIT,
                      display_name: Optional[str] = None,
                      description: str = "",
                      install_command: Optional[str] = None) -> Tool:
        self._require_init()
        try:
            spec = ToolSpec(
                source_reference=source_reference,
                install_method=install_method,
                display_name=display_name,
                description=description,
                install_command=install_command
            )
        except ValidationError as e:
            raise InvalidState(f"Invalid tool: {e.errors()[0]['msg']}",
                               details={"source_reference": source_reference}) from e
        return self.registry.register(spec)

    def remove_tool(self, tool_id: str) -> None:
        self._require_init()
        self.registry.remove(tool_id)

    def get_tool(self, tool_id: str) -> Tool:
        self._require_init()
        return self.registry.get(tool_id)

    def list_tools(self) -> List[Tool]:
        self._require_init()
        return self.registry.list()

    def install_tool(self, tool_id: str) -> "asyncio.Task[InstallationResult]":
        self._require_init()
        return self.installer.install(tool_id)

    async def wait_for_install(self, tool_id: str) -> Optional[InstallationResult]:
        self._require_init()
        return await self.installer.wait(tool_id)

    def cancel_install(self, tool_id: str) -> None:
        self._require_init()
        self.installer.cancel(tool_id)

    def reset_tool(self, tool_id: str) -> Tool:
        self._require_init()
        return self.registry.reset(tool_id)

    # Workflows

    def create_workflow(self, name: str = "New Workflow", description: str = "") -> Workflow:
        self._require_init()
        return self.store.create(name=name, description=description)

    def edit_workflow(self, workflow_id: str) -> Workflow:
        self._require_init()
        return self.store.edit(workflow_id)

    def discard_workflow(self, workflow_id: str) -> None:
        self._require_init()
        self.store.discard(workflow_id)

    def save_workflow(self, workflow: Union[Workflow, str]) -> Workflow:
        self._require_init()
        return self.store.save(workflow)

    def add_step(self, workflow_id: str, tool: str = "", command: str = "") -> WorkflowStep:
        self._require_init()
        return self.store.add_step(workflow_id, tool=tool, command=command)

    def remove_step(self, workflow_id: str, step_id: str) -> None:
        self._require_init()
        self.store.remove_step(workflow_id, step_id)

    def update_step(self, workflow_id: str, step_id: str, field: str, value: str) -> WorkflowStep:
        self._require_init()
        return self.store.update_step(workflow_id, step_id, field, value)

    def get_workflow(self, workflow_id: str) -> Workflow:
        self._require_init()
        return self.store.get(workflow_id)

    def list_workflows(self) -> List[Workflow]:
        self._require_init()
        return self.store.list()

    def remove_workflow(self, workflow_id: str) -> None:
        self._require_init()
        self.store.remove(workflow_id)

    # Runs

    def start_workflow(self, workflow_id: str) -> WorkflowRunReport:
        self._require_init()
        return self.runner.start(workflow_id)

    async def run_workflow(self, workflow_id: str) -> WorkflowRunReport:
        self._require_init()
        return await self.runner.run(workflow_id)

    def cancel_run(self, run_id: str) -> None:
        self._require_init()
        self.runner.cancel(run_id)

    def list_reports(self, workflow_id: Optional[str] = None) -> List[WorkflowRunReport]:
        """Reports from this session plus any saved by earlier ones."""
        self._require_init()
        reports = {r.run_id: r for r in self.runner.reports(workflow_id)}
        if self.state:
            for report in self.state.list_reports(workflow_id):
                reports.setdefault(report.run_id, report)
        return sorted(reports.values(), key=lambda r: r.started_at)

    # Notifications

    def subscribe(self, callback: Callable[[Event], Any],
                  event_type: Optional[str] = None) -> Callable[[], None]:
        return self.events.subscribe(callback, event_type)

    def summary(self) -> Dict[str, Any]:
        """Counts of tools by status and of saved workflows."""
        self._require_init()
        tools = self.registry.list()
        return {
            "total_tools": len(tools),
            **{status.value: sum(1 for t in tools if t.status == status) for status in ToolStatus},
            "workflows": len(self.store.list()),
        }

    def _tool_workdir(self, tool: Tool) -> Optional[Path]:
        if tool.install_method != InstallMethod.GIT:
            return None
        path = self.installer.install_dir(tool)
        return path if path.is_dir() else None

    def _require_init(self) -> None:
        if not self.initialized:
            raise InvalidState("Orchestrator used before init()")
