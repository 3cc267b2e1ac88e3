"""
Installer: drives a tool through pending -> installing -> ready | error.
"""

import asyncio
import logging
import re
import shlex
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

from ..analyzers.source_reference import normalize_source_reference
from ..errors import Cancelled, ExecutionFailure, InvalidState, NotFound
from ..models.installation import ExecutionResult, InstallationResult, InstallOutcome
from ..models.tool import Tool, ToolStatus, InstallMethod
from .executor import ProcessExecutor
from .registry import ToolRegistry


CANCELLED_DETAIL = Cancelled.__name__


class Installer:
    """
    Installs registered tools through a process executor.

    `install` flips the tool to installing before it returns and does the
    external work in a background task. One task and one lock exist per tool
    id, so a tool is never installed twice at the same time; installs of
    different tools run concurrently.
    """

    def __init__(self,
                 registry: ToolRegistry,
                 executor: ProcessExecutor,
                 config: Optional[Dict[str, Any]] = None):
        """
        Initialize the installer.

        Args:
            registry: Tool registry that owns status transitions
            executor: Executor used for every install command
            config: Install configuration dictionary
        """
        config = config or {}
        self.logger = logging.getLogger(__name__)
        self.registry = registry
        self.executor = executor
        self.tools_dir = Path(config.get('tools_dir', 'tools'))
        self.git_base_url = config.get('git_base_url', 'https://github.com').rstrip('/')
        self.go_version_suffix = config.get('go_version_suffix', '@latest')
        self.error_detail_max_chars = config.get('error_detail_max_chars', 500)

        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Dict[str, "asyncio.Task[InstallationResult]"] = {}
        self._cancel_requested: set = set()

    def install(self, tool_id: str) -> "asyncio.Task[InstallationResult]":
        """
        Start installing a tool.

        The tool is installing when this returns; the returned task resolves
        to the InstallationResult. Must be called from a running event loop.

        Raises:
            NotFound: If the tool is not registered
            InvalidState: If the tool is not pending or error, or an install is in flight
        """
        tool = self.registry.get(tool_id)
        if tool.status not in (ToolStatus.PENDING, ToolStatus.ERROR):
            raise InvalidState(
                f"Tool {tool.display_name} cannot be installed while {tool.status.value}",
                details={"tool_id": tool_id, "status": tool.status.value}
            )
        if self.in_flight(tool_id):
            raise InvalidState(f"An install is already in flight for {tool_id}",
                               details={"tool_id": tool_id})

        loop = asyncio.get_running_loop()

        if tool.status == ToolStatus.ERROR:
            self.registry.transition(tool_id, ToolStatus.PENDING)
        tool = self.registry.transition(tool_id, ToolStatus.INSTALLING)
        self._cancel_requested.discard(tool_id)

        task = loop.create_task(self._install(tool))
        self._tasks[tool_id] = task
        task.add_done_callback(lambda t: self._forget(tool_id, t))
        return task

    def in_flight(self, tool_id: str) -> bool:
        task = self._tasks.get(tool_id)
        return task is not None and not task.done()

    def cancel(self, tool_id: str) -> None:
        """
        Request cancellation of an in-flight install.

        The running process is left alone; no further command is issued and
        the tool ends in error with detail 'Cancelled'.
        """
        if not self.in_flight(tool_id):
            raise InvalidState(f"No install in flight for {tool_id}", details={"tool_id": tool_id})
        self.logger.info(f"Cancel requested for install of {tool_id}")
        self._cancel_requested.add(tool_id)

    async def wait(self, tool_id: str) -> Optional[InstallationResult]:
        """Wait for the in-flight install of a tool, if any."""
        task = self._tasks.get(tool_id)
        if task is None:
            return None
        return await task

    def install_dir(self, tool: Tool) -> Path:
        """
        Directory a git install clones into.

        Keyed by the canonical reference (tools/<owner>/<repo>, or
        tools/<host>/<owner>/<repo> off GitHub), which is unique per tool.
        """
        ref = normalize_source_reference(tool.source_reference)
        parts = []
        for part in ref.canonical.split("/"):
            safe = re.sub(r'[^\w.-]+', '_', part)
            parts.append("_" if safe in ("", ".", "..") else safe)
        return self.tools_dir.joinpath(*parts)

    def build_procedure(self, tool: Tool) -> List[Tuple[str, Optional[Path]]]:
        """
        Commands that install a tool, as (command, workdir) pairs.

        git: clone (or fast-forward an existing clone), then the optional
        install_command inside the clone. go: go install <module>@latest.
        """
        ref = normalize_source_reference(tool.source_reference)

        if tool.install_method == InstallMethod.GO:
            module = ref.module_path + self.go_version_suffix
            return [(f"go install {shlex.quote(module)}", None)]

        if ref.host == "github.com":
            url = f"{self.git_base_url}/{ref.owner}/{ref.repo}.git"
        else:
            url = f"https://{ref.host}/{ref.owner}/{ref.repo}.git"

        target = self.install_dir(tool)
        if (target / ".git").is_dir():
            steps = [(f"git -C {shlex.quote(str(target))} pull --ff-only", None)]
        else:
            steps = [(f"git clone --depth 1 {shlex.quote(url)} {shlex.quote(str(target))}", None)]
        if tool.install_command:
            steps.append((tool.install_command, target))
        return steps

    async def _install(self, tool: Tool) -> InstallationResult:
        result = InstallationResult(tool_id=tool.id, tool_name=tool.display_name)
        lock = self._locks.setdefault(tool.id, asyncio.Lock())

        async with lock:
            self.logger.info(f"Installing {tool.display_name} via {tool.install_method.value}")
            try:
                if tool.install_method == InstallMethod.GIT:
                    self.install_dir(tool).parent.mkdir(parents=True, exist_ok=True)

                for command, workdir in self.build_procedure(tool):
                    if tool.id in self._cancel_requested:
                        return self._finish(result, InstallOutcome.CANCELLED, CANCELLED_DETAIL)

                    result.commands.append(command)
                    execution = await self.executor.execute(command, workdir)
                    result.executions.append(execution)

                    if not execution.succeeded:
                        detail = self._describe_failure(command, execution)
                        return self._finish(result, InstallOutcome.FAILED, detail)

                if tool.id in self._cancel_requested:
                    return self._finish(result, InstallOutcome.CANCELLED, CANCELLED_DETAIL)
                return self._finish(result, InstallOutcome.SUCCEEDED)

            except ExecutionFailure as e:
                return self._finish(result, InstallOutcome.FAILED, self._truncate(e.message))
            except Exception as e:
                self.logger.error(f"Unexpected install error for {tool.display_name}: {e}", exc_info=True)
                return self._finish(result, InstallOutcome.FAILED, self._truncate(str(e) or type(e).__name__))

    def _finish(self, result: InstallationResult, outcome: InstallOutcome,
                error_detail: Optional[str] = None) -> InstallationResult:
        result.complete(outcome, error_detail)
        status = ToolStatus.READY if outcome == InstallOutcome.SUCCEEDED else ToolStatus.ERROR
        try:
            self.registry.transition(result.tool_id, status, error_detail)
        except NotFound:
            self.logger.warning(f"Tool {result.tool_id} was removed during install; result dropped")

        if outcome == InstallOutcome.SUCCEEDED:
            self.logger.info(f"Installed {result.tool_name} in {result.duration_seconds:.2f}s")
        else:
            self.logger.error(f"Install of {result.tool_name} {outcome.value}: {error_detail}")
        return result

    def _describe_failure(self, command: str, execution: ExecutionResult) -> str:
        output = execution.stderr.strip() or execution.stdout.strip()
        detail = f"'{command}' exited with {execution.exit_code}"
        if output:
            detail = f"{detail}: {output}"
        return self._truncate(detail)

    def _truncate(self, text: str) -> str:
        if len(text) <= self.error_detail_max_chars:
            return text
        return text[:self.error_detail_max_chars - 3] + "..."

    def _forget(self, tool_id: str, task: "asyncio.Task") -> None:
        # a newer install of the same tool keeps its task, lock and cancel flag
        if self._tasks.get(tool_id) is task:
            del self._tasks[tool_id]
            self._locks.pop(tool_id, None)
            self._cancel_requested.discard(tool_id)
