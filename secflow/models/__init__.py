"""
Data models for the tool lifecycle and workflow engine.
"""

from .tool import Tool, ToolSpec, ToolStatus, InstallMethod
from .workflow import Workflow, WorkflowStep
from .installation import ExecutionResult, InstallationResult, InstallOutcome
from .run import StepOutcome, StepStatus, RunStatus, WorkflowRunReport

__all__ = [
    "Tool",
    "ToolSpec",
    "ToolStatus",
    "InstallMethod",
    "Workflow",
    "WorkflowStep",
    "ExecutionResult",
    "InstallationResult",
    "InstallOutcome",
    "StepOutcome",
    "StepStatus",
    "RunStatus",
    "WorkflowRunReport"
]
