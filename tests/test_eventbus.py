from eventbus import CECEventBus


class TestCECEventBus:
    """Test CECEventBus"""

    def test_emit_calls_handlers_in_order(self):
        bus = CECEventBus()
        calls = []

        bus.on("ready", lambda: calls.append("first"))
        bus.on("ready", lambda: calls.append("second"))
        bus.emit("ready")

        assert calls == ["first", "second"]

    def test_emit_passes_payload(self):
        bus = CECEventBus()
        received = []

        bus.on("0:powerStatus", received.append)
        bus.emit("0:powerStatus", "on")
        bus.emit("0:powerStatus", None)

        assert received == ["on", None]

    def test_emit_without_handlers(self):
        """Test that emitting an event nobody listens to is harmless"""
        bus = CECEventBus()
        bus.emit("keyup", "select")

    def test_once_handler_called_once(self):
        bus = CECEventBus()
        received = []

        bus.once("keydown", received.append)
        bus.emit("keydown", "up")
        bus.emit("keydown", "down")

        assert received == ["up"]
        assert bus.listener_count("keydown") == 0

    def test_off_removes_handler(self):
        bus = CECEventBus()
        received = []

        bus.on("keypress", received.append)
        bus.off("keypress", received.append)
        bus.emit("keypress", "select")

        assert received == []

    def test_off_unknown_handler_is_ignored(self):
        bus = CECEventBus()
        bus.off("keypress", print)

    def test_failing_handler_does_not_stop_others(self):
        """Test that an exception in one handler is logged and not propagated"""
        bus = CECEventBus()
        received = []

        def broken(value):
            raise RuntimeError("boom")

        bus.on("1:activeSource", broken)
        bus.on("1:activeSource", received.append)
        bus.emit("1:activeSource", "yes")

        assert received == ["yes"]

    def test_handler_may_register_during_emit(self):
        bus = CECEventBus()
        received = []

        bus.on("ready", lambda: bus.on("ready", lambda: received.append("late")))
        bus.emit("ready")

        assert received == []
        bus.emit("ready")
        assert received == ["late"]
