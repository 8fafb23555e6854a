import logging
import threading
from typing import Optional

from constants import KEY_RELEASE_TIMEOUT, get_key_name
from eventbus import CECEventBus


class KeyEdgeDetector:
    """
    Turns remote-control traffic into keydown/keypress/keyup events.

    A held key produces repeated "pressed" frames and one "released" frame.
    Every frame (re)arms a release window; keydown fires when a press arrives
    with no window armed, keyup fires once when the window runs out.
    """

    def __init__(self, bus: CECEventBus, release_timeout: float = KEY_RELEASE_TIMEOUT):
        self.logger = logging.getLogger('KeyEdgeDetector')
        self.bus = bus
        self.release_timeout = release_timeout
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._last_code: Optional[str] = None

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def pressed(self, code: str) -> None:
        """Handle a user-control-pressed frame carrying code"""
        key = get_key_name(code)

        with self._lock:
            is_new_press = self._timer is None
            self._last_code = code
            self._rearm()

        self.bus.emit('keypress', key)
        if is_new_press:
            self.logger.debug(f"Key down: {key}")
            self.bus.emit('keydown', key)

    def released(self, code: str) -> None:
        """Handle a key released frame"""
        with self._lock:
            if self._last_code is None:
                self._last_code = code
            self._rearm()

    def cancel(self) -> None:
        """Drop any armed window without emitting keyup"""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _rearm(self) -> None:
        # Caller holds self._lock
        if self._timer is not None:
            self._timer.cancel()
        timer = threading.Timer(self.release_timeout, self._on_timeout)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _on_timeout(self) -> None:
        with self._lock:
            if self._timer is not threading.current_thread():
                # Superseded by a newer frame
                return
            self._timer = None
            code = self._last_code
            self._last_code = None

        key = get_key_name(code)
        self.logger.debug(f"Key up: {key}")
        self.bus.emit('keyup', key)
