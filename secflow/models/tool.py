"""
Tool-related data models.
"""

from enum import Enum
from typing import Optional, Dict, Set
from datetime import datetime
from uuid import uuid4
from pydantic import BaseModel, Field, validator


class InstallMethod(str, Enum):
    """Strategy used to materialize a tool."""
    GIT = "git"
    GO = "go"


class ToolStatus(str, Enum):
    """Installation status of a tool."""
    PENDING = "pending"
    INSTALLING = "installing"
    READY = "ready"
    ERROR = "error"


# pending -> installing -> {ready | error}; error -> pending for re-install
ALLOWED_TRANSITIONS: Dict[ToolStatus, Set[ToolStatus]] = {
    ToolStatus.PENDING: {ToolStatus.INSTALLING},
    ToolStatus.INSTALLING: {ToolStatus.READY, ToolStatus.ERROR},
    ToolStatus.READY: set(),
    ToolStatus.ERROR: {ToolStatus.PENDING},
}


def can_transition(current: ToolStatus, target: ToolStatus) -> bool:
    """Check whether a status transition is legal."""
    return target in ALLOWED_TRANSITIONS[current]


class ToolSpec(BaseModel):
    """What a caller supplies to register a tool."""
    source_reference: str = Field(..., description="Repository reference, e.g. owner/repo")
    install_method: InstallMethod = Field(default=InstallMethod.GIT, description="Install strategy")
    display_name: Optional[str] = Field(None, description="Name shown to users; defaults to the repo name")
    description: str = Field(default="", description="Tool description")
    install_command: Optional[str] = Field(
        None, description="Build command run inside the clone after a git install"
    )

    @validator('source_reference')
    def validate_reference_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("source_reference must not be empty")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "source_reference": "projectdiscovery/nuclei",
                "install_method": "go",
                "description": "Template based vulnerability scanner",
            }
        }


class Tool(BaseModel):
    """A registered external tool and its install status."""
    id: str = Field(default_factory=lambda: uuid4().hex, description="Unique tool identifier")
    display_name: str = Field(..., description="Tool name")
    source_reference: str = Field(..., description="Canonical owner/repo reference")
    install_method: InstallMethod = Field(..., description="Install strategy")
    description: str = Field(default="")
    install_command: Optional[str] = Field(None)
    status: ToolStatus = Field(default=ToolStatus.PENDING, description="Current status")
    error_detail: Optional[str] = Field(None, description="Error message, present iff status is error")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @validator('error_detail', always=True)
    def validate_error_detail(cls, v, values):
        status = values.get('status')
        if status == ToolStatus.ERROR:
            if not v:
                raise ValueError("error_detail is required when status is error")
            return v
        return None

    def with_status(self, status: ToolStatus, error: Optional[str] = None) -> "Tool":
        """Return a copy with the new status and a fresh timestamp."""
        return Tool(**{
            **self.model_dump(),
            "status": status,
            "error_detail": error if status == ToolStatus.ERROR else None,
            "updated_at": datetime.utcnow(),
        })
