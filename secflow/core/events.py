"""
Change notifications for the presentation layer.
Subscribers may be plain or async callables; a failing subscriber is logged
and never interrupts the engine.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


TOOL_REGISTERED = "tool.registered"
TOOL_REMOVED = "tool.removed"
TOOL_STATUS_CHANGED = "tool.status_changed"
WORKFLOW_SAVED = "workflow.saved"
WORKFLOW_REMOVED = "workflow.removed"
RUN_STARTED = "run.started"
RUN_STEP_COMPLETED = "run.step_completed"
RUN_COMPLETED = "run.completed"


@dataclass
class Event:
    """A single change notification."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Subscriber = Callable[[Event], Any]


class EventBus:
    """Fan-out of engine events to subscribers."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._subscribers: Dict[Optional[str], List[Subscriber]] = {}
        self._pending: set = set()

    def subscribe(self, callback: Subscriber, event_type: Optional[str] = None) -> Callable[[], None]:
        """
        Register a subscriber.

        Args:
            callback: Called with each Event
            event_type: Only deliver this event type; None means all events

        Returns:
            A function that removes the subscription
        """
        self._subscribers.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def emit(self, event_type: str, **payload: Any) -> Event:
        """Deliver an event to every matching subscriber."""
        event = Event(type=event_type, payload=payload)
        callbacks = self._subscribers.get(event_type, []) + self._subscribers.get(None, [])
        for callback in list(callbacks):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    self._schedule(result, event)
            except Exception as e:
                self.logger.warning(f"Subscriber failed for {event_type}: {e}", exc_info=True)
        return event

    def _schedule(self, awaitable, event: Event) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop; drop the coroutine cleanly
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.logger.warning(f"Async subscriber for {event.type} skipped: no running event loop")
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: "asyncio.Future") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            self.logger.warning(f"Async subscriber failed: {exc}")

    async def drain(self) -> None:
        """Wait for async subscribers still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
