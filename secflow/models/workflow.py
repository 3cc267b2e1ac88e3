"""
Workflow definition models.
"""

from typing import List, Optional
from uuid import uuid4
from pydantic import BaseModel, Field, validator


STEP_FIELDS = ("tool", "command")


class WorkflowStep(BaseModel):
    """One step of a workflow: a tool reference and an opaque command."""
    id: str = Field(default_factory=lambda: uuid4().hex, description="Step identifier")
    tool: str = Field(default="", description="Tool id or display name")
    command: str = Field(default="", description="Command line handed to the executor")


class Workflow(BaseModel):
    """A named, ordered sequence of steps."""
    id: str = Field(default_factory=lambda: uuid4().hex, description="Workflow identifier")
    name: str = Field(default="New Workflow", description="Workflow name")
    description: str = Field(default="", description="Workflow description")
    steps: List[WorkflowStep] = Field(default_factory=list, description="Steps in execution order")

    @validator('name')
    def validate_name_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("Workflow name must not be empty")
        return v

    def find_step(self, step_id: str) -> Optional[int]:
        """Index of a step, or None."""
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "External recon",
                "description": "Subdomains then HTTP probing",
                "steps": [
                    {"tool": "subfinder", "command": "subfinder -silent -d example.com"},
                    {"tool": "httpx", "command": "httpx -u example.com"},
                ],
            }
        }
