import time

from conftest import EventRecorder
from eventbus import CECEventBus
from key_edges import KeyEdgeDetector

WINDOW = 0.1


def make_detector():
    bus = CECEventBus()
    recorder = EventRecorder().listen(bus, "keydown", "keypress", "keyup")
    return KeyEdgeDetector(bus, release_timeout=WINDOW), recorder


class TestKeyEdgeDetector:
    """Test keydown/keypress/keyup reconstruction"""

    def test_single_press_and_release(self):
        detector, recorder = make_detector()

        detector.pressed("41")
        detector.released("41")

        assert recorder.events == [("keypress", "volume_up"), ("keydown", "volume_up")]

        time.sleep(WINDOW * 4)
        assert recorder.events[-1] == ("keyup", "volume_up")
        assert not detector.armed

    def test_held_key_with_release(self):
        """Test that N repeated presses and one release give one keydown, N keypress, one keyup"""
        detector, recorder = make_detector()

        for _ in range(5):
            detector.pressed("01")
        detector.released("01")

        assert recorder.count("keydown") == 1
        assert recorder.count("keypress") == 5
        assert recorder.count("keyup") == 0

        time.sleep(WINDOW * 4)
        assert recorder.count("keyup") == 1
        assert recorder.names()[-1] == "keyup"

    def test_presses_without_release(self):
        """Test that a missing release frame still ends the press with one keyup"""
        detector, recorder = make_detector()

        detector.pressed("00")
        detector.pressed("00")
        time.sleep(WINDOW * 4)

        assert recorder.names() == ["keypress", "keydown", "keypress", "keyup"]
        assert recorder.events[-1] == ("keyup", "select")

    def test_release_rearms_window(self):
        """Test that keyup waits for the window after the release frame"""
        detector, recorder = make_detector()

        detector.pressed("02")
        time.sleep(WINDOW * 0.6)
        detector.released("02")
        time.sleep(WINDOW * 0.6)

        assert recorder.count("keyup") == 0

        time.sleep(WINDOW * 4)
        assert recorder.count("keyup") == 1

    def test_new_press_after_keyup_is_new_keydown(self):
        detector, recorder = make_detector()

        detector.pressed("03")
        detector.released("03")
        time.sleep(WINDOW * 4)
        detector.pressed("04")

        assert recorder.names() == ["keypress", "keydown", "keyup", "keypress", "keydown"]
        assert recorder.events[-1] == ("keydown", "right")

    def test_keyup_reports_last_pressed_key(self):
        detector, recorder = make_detector()

        detector.pressed("20")
        detector.released("00")
        time.sleep(WINDOW * 4)

        assert recorder.events[-1] == ("keyup", "number_0")

    def test_unknown_key_code(self):
        detector, recorder = make_detector()

        detector.pressed("FE")

        assert recorder.events[0] == ("keypress", "FE")

    def test_cancel_suppresses_keyup(self):
        detector, recorder = make_detector()

        detector.pressed("41")
        detector.cancel()
        time.sleep(WINDOW * 4)

        assert recorder.count("keyup") == 0
        assert not detector.armed
