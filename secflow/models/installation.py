"""
Process execution and installation result models.
"""

from enum import Enum
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class ExecutionResult(BaseModel):
    """What the executor reports for a finished process."""
    exit_code: int = Field(..., description="Process exit status")
    stdout: str = Field(default="", description="Captured standard output")
    stderr: str = Field(default="", description="Captured standard error")
    duration_seconds: Optional[float] = Field(None, description="Wall clock duration")

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    class Config:
        json_schema_extra = {
            "example": {
                "exit_code": 0,
                "stdout": "nuclei v3.1.0",
                "stderr": "",
                "duration_seconds": 0.4
            }
        }


class InstallOutcome(str, Enum):
    """How an install attempt ended."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class InstallationResult(BaseModel):
    """Complete result of one install attempt for a tool."""
    tool_id: str = Field(..., description="Tool identifier")
    tool_name: str = Field(..., description="Tool display name")
    outcome: Optional[InstallOutcome] = Field(None, description="Set when the attempt finishes")
    error_detail: Optional[str] = Field(None, description="Why the install did not succeed")

    # Execution details
    commands: List[str] = Field(default_factory=list, description="Commands issued, in order")
    executions: List[ExecutionResult] = Field(default_factory=list)

    # Timing
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.outcome == InstallOutcome.SUCCEEDED

    def complete(self, outcome: InstallOutcome, error_detail: Optional[str] = None) -> None:
        """Mark installation as complete."""
        self.outcome = outcome
        self.error_detail = error_detail
        self.completed_at = datetime.utcnow()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
