"""Tests for change notifications and the error taxonomy."""
import json

import pytest

from secflow.core.events import EventBus, TOOL_REGISTERED, TOOL_REMOVED
from secflow.errors import ErrorCode, NotFound, SecFlowError


class TestEventBus:

    def test_filtered_and_wildcard_subscribers(self):
        bus = EventBus()
        typed, everything = [], []
        bus.subscribe(typed.append, TOOL_REGISTERED)
        bus.subscribe(everything.append)

        bus.emit(TOOL_REGISTERED, tool_id="a")
        bus.emit(TOOL_REMOVED, tool_id="a")

        assert [e.type for e in typed] == [TOOL_REGISTERED]
        assert [e.type for e in everything] == [TOOL_REGISTERED, TOOL_REMOVED]
        assert typed[0].payload == {"tool_id": "a"}

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        bus.emit(TOOL_REGISTERED)
        assert seen == []

    def test_failing_subscriber_does_not_stop_delivery(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        bus.subscribe(broken)
        bus.subscribe(seen.append)
        bus.emit(TOOL_REGISTERED)
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_async_subscribers_are_scheduled(self):
        bus = EventBus()
        seen = []

        async def record(event):
            seen.append(event.type)

        async def broken(event):
            raise RuntimeError("subscriber bug")

        bus.subscribe(record)
        bus.subscribe(broken)
        bus.emit(TOOL_REMOVED)
        await bus.drain()
        assert seen == [TOOL_REMOVED]

    def test_async_subscriber_without_loop_is_skipped(self):
        bus = EventBus()

        async def record(event):
            raise AssertionError("must not run")

        bus.subscribe(record)
        bus.emit(TOOL_REGISTERED)


class TestErrors:

    def test_structured_error(self):
        error = NotFound("Tool not found: x", details={"tool_id": "x"})
        assert isinstance(error, SecFlowError)
        assert error.kind == "NotFound"
        assert error.code == ErrorCode.NOT_FOUND
        assert str(error) == "[ENTITY_001] Tool not found: x"
        assert json.loads(error.to_json()) == {
            "kind": "NotFound",
            "code": "ENTITY_001",
            "message": "Tool not found: x",
            "details": {"tool_id": "x"},
        }
