"""
Structured error taxonomy for the tool lifecycle and workflow engine.

Validation errors (DuplicateReference, NotFound, InvalidState, EmptyWorkflow)
are raised synchronously to the caller and never mutate state.

Execution-time errors (UnresolvedTool, ExecutionFailure, Cancelled) are
recorded on the tool status or in a run report instead of being raised
across the async boundary. ExecutionFailure is also what an executor raises
when a process cannot be started.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Searchable codes for every error kind."""
    DUPLICATE_REFERENCE = "TOOL_001"
    NOT_FOUND = "ENTITY_001"
    INVALID_STATE = "ENTITY_002"
    EMPTY_WORKFLOW = "WORKFLOW_001"
    UNRESOLVED_TOOL = "RUN_001"
    EXECUTION_FAILURE = "RUN_002"
    CANCELLED = "RUN_003"


class SecFlowError(Exception):
    """
    Base exception with structured error information.

    Attributes:
        code: ErrorCode enum value
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    code: ErrorCode = ErrorCode.INVALID_STATE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code.value}] {message}")

    @property
    def kind(self) -> str:
        """Taxonomy name, e.g. 'NotFound'."""
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class DuplicateReference(SecFlowError):
    code = ErrorCode.DUPLICATE_REFERENCE


class NotFound(SecFlowError):
    code = ErrorCode.NOT_FOUND


class InvalidState(SecFlowError):
    code = ErrorCode.INVALID_STATE


class EmptyWorkflow(SecFlowError):
    code = ErrorCode.EMPTY_WORKFLOW


class UnresolvedTool(SecFlowError):
    code = ErrorCode.UNRESOLVED_TOOL


class ExecutionFailure(SecFlowError):
    code = ErrorCode.EXECUTION_FAILURE


class Cancelled(SecFlowError):
    code = ErrorCode.CANCELLED


__all__ = [
    "ErrorCode",
    "SecFlowError",
    "DuplicateReference",
    "NotFound",
    "InvalidState",
    "EmptyWorkflow",
    "UnresolvedTool",
    "ExecutionFailure",
    "Cancelled",
]
