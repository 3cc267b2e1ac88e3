"""
Process executors: the only place external programs are started.
"""

import asyncio
import logging
import shutil
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Any, Optional, Union

from ..errors import ExecutionFailure
from ..models.installation import ExecutionResult


class ProcessExecutor(ABC):
    """Capability to start a command and wait for it to finish."""

    @abstractmethod
    async def execute(self, command: str,
                      workdir: Optional[Union[str, Path]] = None) -> ExecutionResult:
        """
        Run a command to completion.

        Args:
            command: Command line to run
            workdir: Optional working directory

        Returns:
            ExecutionResult with exit code and captured output

        Raises:
            ExecutionFailure: If the process could not be started
        """


class SubprocessExecutor(ProcessExecutor):
    """Runs commands through the local shell with asyncio subprocesses."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the executor.

        Args:
            config: Executor configuration dictionary
        """
        config = config or {}
        self.logger = logging.getLogger(__name__)
        self.timeout = config.get('timeout_seconds', 600)
        self.shell = config.get('shell', '/bin/bash')
        self.semaphore = asyncio.Semaphore(config.get('max_concurrent_processes', 5))

        if self.shell and not shutil.which(self.shell):
            self.logger.warning(f"Shell {self.shell} not found, falling back to the system shell")
            self.shell = None

    async def execute(self, command: str,
                      workdir: Optional[Union[str, Path]] = None) -> ExecutionResult:
        if not command or not command.strip():
            raise ExecutionFailure("Empty command")
        if workdir is not None and not Path(workdir).is_dir():
            raise ExecutionFailure(f"Working directory does not exist: {workdir}",
                                   details={"workdir": str(workdir)})

        async with self.semaphore:
            self.logger.debug(f"Executing: {command} (cwd={workdir or '.'})")
            start = time.monotonic()
            try:
                process = await asyncio.create_subprocess_shell(
                    command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=str(workdir) if workdir else None,
                    executable=self.shell
                )
            except OSError as e:
                raise ExecutionFailure(f"Could not start process: {e}",
                                       details={"command": command}) from e

            # Wait with timeout
            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(),
                    timeout=self.timeout
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise ExecutionFailure(
                    f"Command timed out after {self.timeout} seconds",
                    details={"command": command}
                )

            return ExecutionResult(
                exit_code=process.returncode if process.returncode is not None else -1,
                stdout=stdout.decode(errors="replace") if stdout else "",
                stderr=stderr.decode(errors="replace") if stderr else "",
                duration_seconds=time.monotonic() - start
            )
