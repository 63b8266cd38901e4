"""
Unit tests for the event emitter.
"""

import logging

import pytest

from mongo_session_store.session.events import EVENTS, EventEmitter


class TestEventEmitter:
    """Tests for EventEmitter registration and dispatch."""

    def test_listeners_run_in_registration_order(self):
        emitter = EventEmitter()
        calls = []
        emitter.on("set", lambda sid: calls.append(("first", sid)))
        emitter.on("set", lambda sid: calls.append(("second", sid)))

        assert emitter.emit("set", "abc") is True
        assert calls == [("first", "abc"), ("second", "abc")]

    def test_emit_without_listeners(self):
        assert EventEmitter().emit("get", "abc") is False

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            EventEmitter().on("sessionCreated", print)

    def test_on_works_as_decorator_helper(self):
        emitter = EventEmitter()

        def listener(sid):
            pass

        assert emitter.on("destroy", listener) is listener
        assert emitter.listener_count("destroy") == 1

    def test_once_then_off(self):
        emitter = EventEmitter()
        calls = []

        def listener(sid):
            calls.append(sid)

        emitter.once("get", listener)
        emitter.off("get", listener)
        emitter.emit("get", "abc")

        assert calls == []
        assert emitter.listener_count("get") == 0

    def test_off_unknown_listener_is_noop(self):
        emitter = EventEmitter()

        emitter.off("get", print)

        assert emitter.listener_count("get") == 0

    def test_failing_listener_is_logged(self, caplog):
        emitter = EventEmitter()
        calls = []

        def broken(sid):
            raise RuntimeError("boom")

        emitter.on("touch", broken)
        emitter.on("touch", calls.append)

        with caplog.at_level(logging.WARNING, logger="mongo_session_store"):
            emitter.emit("touch", "abc")

        assert calls == ["abc"]
        record, = caplog.records
        assert record.extra_data == {"event": "touch", "error": "boom"}

    def test_known_events(self):
        assert EVENTS == {
            "connected", "disconnected", "create", "update",
            "set", "get", "touch", "destroy", "all",
        }
