"""
Core modules for the tool lifecycle and workflow engine.
"""

from .orchestrator import SecFlowOrchestrator
from .registry import ToolRegistry
from .installer import Installer
from .store import WorkflowStore
from .runner import WorkflowRunner
from .executor import ProcessExecutor, SubprocessExecutor
from .events import Event, EventBus
from .state import StateRepository

__all__ = [
    "SecFlowOrchestrator",
    "ToolRegistry",
    "Installer",
    "WorkflowStore",
    "WorkflowRunner",
    "ProcessExecutor",
    "SubprocessExecutor",
    "Event",
    "EventBus",
    "StateRepository"
]
