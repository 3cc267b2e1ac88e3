"""
Workflow run report models.
"""

from enum import Enum
from typing import Optional, List
from datetime import datetime
from uuid import uuid4
from pydantic import BaseModel, Field


class StepStatus(str, Enum):
    """Outcome of a single attempted step."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Overall status of a workflow run."""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepOutcome(BaseModel):
    """Result of one attempted workflow step."""
    step_id: str
    position: int = Field(..., description="Index of the step in the workflow")
    tool: str
    command: str
    status: StepStatus
    error_kind: Optional[str] = Field(None, description="UnresolvedTool or ExecutionFailure")
    error: Optional[str] = Field(None, description="Error message if the step did not succeed")
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None


class WorkflowRunReport(BaseModel):
    """Complete report of a workflow run."""
    run_id: str = Field(default_factory=lambda: uuid4().hex)
    workflow_id: str
    workflow_name: str
    status: RunStatus = RunStatus.RUNNING
    total_steps: int = Field(..., description="Number of steps in the workflow when the run started")
    outcomes: List[StepOutcome] = Field(default_factory=list, description="Attempted steps, in order")

    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    def complete(self, status: RunStatus) -> None:
        """Mark the run as finished."""
        self.status = status
        self.completed_at = datetime.utcnow()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    class Config:
        json_schema_extra = {
            "example": {
                "workflow_id": "6f1c",
                "workflow_name": "External recon",
                "status": "failed",
                "total_steps": 3,
                "outcomes": [
                    {"step_id": "a1", "position": 0, "tool": "subfinder",
                     "command": "subfinder -d example.com", "status": "succeeded", "exit_code": 0},
                    {"step_id": "b2", "position": 1, "tool": "httpx",
                     "command": "httpx -u example.com", "status": "failed",
                     "error_kind": "ExecutionFailure", "exit_code": 2},
                ],
                "duration_seconds": 12.4,
            }
        }
