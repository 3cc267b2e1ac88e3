"""
Workflow runner: executes a saved workflow's steps in order, failing fast.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..errors import EmptyWorkflow, ExecutionFailure, InvalidState, NotFound, UnresolvedTool
from ..models.run import RunStatus, StepOutcome, StepStatus, WorkflowRunReport
from ..models.tool import Tool, ToolStatus
from ..models.workflow import Workflow, WorkflowStep
from .events import EventBus, RUN_STARTED, RUN_STEP_COMPLETED, RUN_COMPLETED
from .executor import ProcessExecutor
from .registry import ToolRegistry
from .state import StateRepository
from .store import WorkflowStore


class WorkflowRunner:
    """Runs stored workflows against registered, ready tools."""

    def __init__(self,
                 store: WorkflowStore,
                 registry: ToolRegistry,
                 executor: ProcessExecutor,
                 events: Optional[EventBus] = None,
                 state: Optional[StateRepository] = None,
                 workdir_for: Optional[Callable[[Tool], Optional[Path]]] = None):
        """
        Initialize the runner.

        Args:
            store: Source of saved workflows
            registry: Tool registry used to resolve each step's tool
            executor: Executor used for every step command
            events: Event bus for progress notifications
            state: Optional repository that completed reports are saved to
            workdir_for: Maps a tool to the directory its commands run in
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.registry = registry
        self.executor = executor
        self.events = events or EventBus()
        self.state = state
        self.workdir_for = workdir_for

        self._tasks: Dict[str, "asyncio.Task[WorkflowRunReport]"] = {}
        self._cancel_requested: set = set()
        self._reports: Dict[str, WorkflowRunReport] = {}

    def start(self, workflow_id: str) -> WorkflowRunReport:
        """
        Validate a workflow and schedule its run.

        Returns a snapshot of the report (status running); the finished
        report is available from `wait` / `get_report`.

        Raises:
            NotFound: If the workflow does not exist
            EmptyWorkflow: If it has no steps
        """
        workflow = self.store.get(workflow_id)
        if not workflow.steps:
            raise EmptyWorkflow(f"Workflow '{workflow.name}' has no steps",
                                details={"workflow_id": workflow_id})
        loop = asyncio.get_running_loop()

        report = WorkflowRunReport(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            total_steps=len(workflow.steps)
        )
        self._reports[report.run_id] = report
        task = loop.create_task(self._run(workflow, report))
        self._tasks[report.run_id] = task
        task.add_done_callback(lambda t: self._tasks.pop(report.run_id, None))

        self.logger.info(f"Started run {report.run_id} of '{workflow.name}' ({len(workflow.steps)} steps)")
        self.events.emit(RUN_STARTED, run_id=report.run_id, workflow_id=workflow.id,
                         total_steps=report.total_steps)
        return report.model_copy(deep=True)

    async def run(self, workflow_id: str) -> WorkflowRunReport:
        """Run a workflow to completion and return its report."""
        report = self.start(workflow_id)
        return await self.wait(report.run_id)

    async def wait(self, run_id: str) -> WorkflowRunReport:
        task = self._tasks.get(run_id)
        if task is not None:
            return await task
        return self.get_report(run_id)

    def cancel(self, run_id: str) -> None:
        """
        Request cancellation of a run.

        The step currently executing is allowed to finish; no later step is
        issued and the report ends cancelled.
        """
        task = self._tasks.get(run_id)
        if task is None or task.done():
            raise InvalidState(f"Run {run_id} is not in progress", details={"run_id": run_id})
        self.logger.info(f"Cancel requested for run {run_id}")
        self._cancel_requested.add(run_id)

    def get_report(self, run_id: str) -> WorkflowRunReport:
        if run_id not in self._reports:
            raise NotFound(f"Run not found: {run_id}", details={"run_id": run_id})
        return self._reports[run_id].model_copy(deep=True)

    def reports(self, workflow_id: Optional[str] = None) -> List[WorkflowRunReport]:
        return [
            r.model_copy(deep=True) for r in self._reports.values()
            if workflow_id is None or r.workflow_id == workflow_id
        ]

    async def _run(self, workflow: Workflow, report: WorkflowRunReport) -> WorkflowRunReport:
        try:
            status = RunStatus.SUCCEEDED
            for position, step in enumerate(workflow.steps):
                if report.run_id in self._cancel_requested:
                    status = RunStatus.CANCELLED
                    break

                outcome = await self._run_step(position, step)
                report.outcomes.append(outcome)
                self.events.emit(RUN_STEP_COMPLETED, run_id=report.run_id,
                                 workflow_id=workflow.id, outcome=outcome.model_copy())

                if outcome.status != StepStatus.SUCCEEDED:
                    self.logger.error(
                        f"Run {report.run_id}: step {position + 1} ({step.tool}) failed: {outcome.error}"
                    )
                    status = RunStatus.FAILED
                    break
            else:
                if report.run_id in self._cancel_requested:
                    status = RunStatus.CANCELLED

            return self._complete(report, status)
        finally:
            self._cancel_requested.discard(report.run_id)

    async def _run_step(self, position: int, step: WorkflowStep) -> StepOutcome:
        outcome = StepOutcome(
            step_id=step.id,
            position=position,
            tool=step.tool,
            command=step.command,
            status=StepStatus.FAILED
        )

        # readiness is read when the step starts, not when the run started
        tool = self.registry.resolve(step.tool)
        if tool is None or tool.status != ToolStatus.READY:
            reason = "is not registered" if tool is None else f"is {tool.status.value}, not ready"
            return self._fail(outcome, UnresolvedTool.__name__, f"Tool '{step.tool}' {reason}")

        workdir = self.workdir_for(tool) if self.workdir_for else None
        try:
            result = await self.executor.execute(step.command, workdir)
        except ExecutionFailure as e:
            return self._fail(outcome, e.kind, e.message)
        except Exception as e:
            self.logger.error(f"Unexpected executor error for step {position + 1}: {e}", exc_info=True)
            return self._fail(outcome, ExecutionFailure.__name__, str(e) or type(e).__name__)

        outcome.exit_code = result.exit_code
        outcome.stdout = result.stdout
        outcome.stderr = result.stderr
        if not result.succeeded:
            return self._fail(outcome, ExecutionFailure.__name__, f"Command exited with {result.exit_code}")

        outcome.status = StepStatus.SUCCEEDED
        outcome.completed_at = datetime.utcnow()
        return outcome

    def _fail(self, outcome: StepOutcome, kind: str, message: str) -> StepOutcome:
        outcome.status = StepStatus.FAILED
        outcome.error_kind = kind
        outcome.error = message
        outcome.completed_at = datetime.utcnow()
        return outcome

    def _complete(self, report: WorkflowRunReport, status: RunStatus) -> WorkflowRunReport:
        report.complete(status)
        self.logger.info(
            f"Run {report.run_id} of '{report.workflow_name}' {status.value}: "
            f"{len(report.outcomes)}/{report.total_steps} steps attempted"
        )
        if self.state:
            try:
                self.state.save_report(report)
            except OSError as e:
                self.logger.error(f"Failed to save report for run {report.run_id}: {e}")
        self.events.emit(RUN_COMPLETED, run_id=report.run_id, workflow_id=report.workflow_id,
                         status=status, report=report.model_copy(deep=True))
        return report.model_copy(deep=True)
