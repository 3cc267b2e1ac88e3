"""
Tool registry: identity and install-status bookkeeping.
"""

import logging
from typing import Dict, List, Optional

from ..analyzers.source_reference import normalize_source_reference
from ..errors import DuplicateReference, NotFound, InvalidState
from ..models.tool import Tool, ToolSpec, ToolStatus, can_transition
from .events import EventBus, TOOL_REGISTERED, TOOL_REMOVED, TOOL_STATUS_CHANGED
from .state import StateRepository


class ToolRegistry:
    """
    Registered tools in registration order.

    Every mutation replaces a whole Tool object and callers only ever get
    copies, so a read never observes a half-applied change.
    """

    def __init__(self, events: Optional[EventBus] = None,
                 state: Optional[StateRepository] = None):
        self.logger = logging.getLogger(__name__)
        self.events = events or EventBus()
        self.state = state
        self._tools: Dict[str, Tool] = {}

        if self.state:
            for tool in self.state.load_tools():
                if tool.status == ToolStatus.INSTALLING:
                    # The process that owned this install is gone
                    tool = tool.with_status(ToolStatus.ERROR, "Install interrupted")
                self._tools[tool.id] = tool
            self.logger.info(f"Loaded {len(self._tools)} tools from {self.state.base_path}")

    def register(self, spec: ToolSpec) -> Tool:
        """
        Register a new tool in pending status.

        Display names are unique too, since workflow steps refer to tools
        by name.

        Raises:
            DuplicateReference: If the source reference or display name is already registered
            InvalidState: If the source reference cannot be parsed
        """
        try:
            ref = normalize_source_reference(spec.source_reference)
        except ValueError as e:
            raise InvalidState(str(e), details={"source_reference": spec.source_reference}) from e
        display_name = (spec.display_name or "").strip() or ref.name

        for existing in self._tools.values():
            if existing.source_reference.lower() == ref.canonical.lower():
                raise DuplicateReference(
                    f"Source reference already registered: {ref.canonical}",
                    details={"tool_id": existing.id}
                )
            if existing.display_name.lower() == display_name.lower():
                raise DuplicateReference(
                    f"Display name '{display_name}' is already used by {existing.source_reference}; "
                    f"register with a different display name",
                    details={"tool_id": existing.id, "display_name": display_name}
                )

        tool = Tool(
            display_name=display_name,
            source_reference=ref.canonical,
            install_method=spec.install_method,
            description=spec.description,
            install_command=spec.install_command,
        )
        self._tools[tool.id] = tool
        self._persist()
        self.logger.info(f"Registered tool {tool.display_name} ({tool.source_reference}) as {tool.id}")
        self.events.emit(TOOL_REGISTERED, tool=tool.model_copy())
        return tool.model_copy()

    def remove(self, tool_id: str) -> None:
        if tool_id not in self._tools:
            raise NotFound(f"Tool not found: {tool_id}", details={"tool_id": tool_id})
        tool = self._tools.pop(tool_id)
        self._persist()
        self.logger.info(f"Removed tool {tool.display_name} ({tool_id})")
        self.events.emit(TOOL_REMOVED, tool_id=tool_id)

    def get(self, tool_id: str) -> Tool:
        if tool_id not in self._tools:
            raise NotFound(f"Tool not found: {tool_id}", details={"tool_id": tool_id})
        return self._tools[tool_id].model_copy()

    def list(self) -> List[Tool]:
        return [t.model_copy() for t in self._tools.values()]

    def resolve(self, reference: str) -> Optional[Tool]:
        """Find a tool by id, then by display name."""
        if reference in self._tools:
            return self._tools[reference].model_copy()
        for tool in self._tools.values():
            if tool.display_name == reference:
                return tool.model_copy()
        return None

    def transition(self, tool_id: str, status: ToolStatus,
                   error_detail: Optional[str] = None) -> Tool:
        """
        Apply a legal status transition.

        Raises:
            NotFound: If the tool is not registered
            InvalidState: If the transition is not allowed
        """
        current = self.get(tool_id)
        if not can_transition(current.status, status):
            raise InvalidState(
                f"Cannot move tool {tool_id} from {current.status.value} to {status.value}",
                details={"tool_id": tool_id, "status": current.status.value}
            )
        updated = current.with_status(status, error_detail)
        self._tools[tool_id] = updated
        self._persist()
        self.logger.info(f"Tool {updated.display_name} ({tool_id}): {current.status.value} -> {status.value}")
        self.events.emit(
            TOOL_STATUS_CHANGED,
            tool_id=tool_id,
            previous=current.status,
            status=status,
            error_detail=updated.error_detail
        )
        return updated.model_copy()

    def reset(self, tool_id: str) -> Tool:
        """Move an errored tool back to pending so it can be installed again."""
        current = self.get(tool_id)
        if current.status != ToolStatus.ERROR:
            raise InvalidState(
                f"Only tools in error can be reset; {tool_id} is {current.status.value}",
                details={"tool_id": tool_id, "status": current.status.value}
            )
        return self.transition(tool_id, ToolStatus.PENDING)

    def __len__(self) -> int:
        return len(self._tools)

    def _persist(self) -> None:
        if self.state:
            self.state.save_tools(list(self._tools.values()))
