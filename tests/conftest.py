import threading

import pytest

from cec_client import CECClient
from cec_comms import MockCECComms
from config import ClientOptions


SCAN_OUTPUT = """opening a connection to the CEC adapter...
requesting CEC bus information ...
CEC bus information
===================
device #0: TV
address:       0.0.0.0
active source: no
vendor:        Samsung
osd string:    TV
CEC version:   1.4
power status:  standby
language:      eng


device #1: Recorder 1
address:       1.0.0.0
active source: no
vendor:        Pulse Eight
osd string:    CEC-Control
CEC version:   1.4
power status:  on
language:      eng


device #5: Audio
address:       2.0.0.0
active source: no
vendor:        Sony
osd string:    Soundbar
CEC version:   1.4
power status:  standby
language:      eng


currently active source: unknown (-1)
"""


class EventRecorder:
    """Collects (event, payload) tuples from a bus"""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def listen(self, bus, *names):
        for name in names:
            bus.on(name, lambda *args, name=name: self._record(name, *args))
        return self

    def _record(self, name, *args):
        with self._lock:
            self.events.append((name,) + args)

    def names(self):
        with self._lock:
            return [event[0] for event in self.events]

    def count(self, name):
        return self.names().count(name)


@pytest.fixture
def mock():
    return MockCECComms(scan_output=SCAN_OUTPUT)


@pytest.fixture
def options():
    return ClientOptions(
        status_timeout=0.2,
        power_change_timeout=0.5,
        active_change_timeout=0.5,
        key_release_timeout=0.05,
    )


@pytest.fixture
def client(mock, options):
    """Client that has scanned SCAN_OUTPUT and seen cec-client become ready"""
    client = CECClient(options, comms=mock)
    started = client.start(threaded=False)
    mock.simulate_line("waiting for input")
    assert started.result(timeout=1) is True
    yield client
    client.close()
