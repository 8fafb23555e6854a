"""
Line Classifier - turns cec-client stdout lines into events

Lines are matched in order against a handful of known shapes; anything else
is adapter chatter and is dropped.
"""

import logging
from enum import Enum

from cec_comms import CECCommand
from constants import ACTIVE_NO, ACTIVE_YES, READY_MARKER, CECOpcode
from devices import DeviceTable
from eventbus import CECEventBus
from key_edges import KeyEdgeDetector

# Remote-control frames are only honoured when they come from the TV
TV_ADDRESS = 0


class ClassifierState(Enum):
    INITIALIZING = 'initializing'
    READY = 'ready'


def get_line_value(line: str) -> str:
    """Text after the last colon, stripped"""
    return line.split(':')[-1].strip()


class LineClassifier:
    """Classifies cec-client output lines and updates the device table"""

    def __init__(self, table: DeviceTable, bus: CECEventBus, keys: KeyEdgeDetector):
        self.logger = logging.getLogger('LineClassifier')
        self.table = table
        self.bus = bus
        self.keys = keys
        self.state = ClassifierState.INITIALIZING

    @property
    def ready(self) -> bool:
        return self.state is ClassifierState.READY

    def reset(self) -> None:
        """Go back to waiting for the ready marker (new cec-client process)"""
        self.state = ClassifierState.INITIALIZING

    def feed_line(self, line: str) -> None:
        """
        Classify one line of cec-client output.

        Never raises: unrecognized or malformed lines are dropped.
        """
        try:
            if self.state is ClassifierState.INITIALIZING:
                self._handle_init_line(line)
            elif line.startswith('power status:'):
                self._handle_power_status(line)
            elif line.startswith('active source:') or (
                    line.startswith('logical address') and 'active' in line):
                self._handle_active_source(line)
            elif line.startswith('TRAFFIC:') and '>>' in line:
                self._handle_traffic(line)
        except Exception as e:
            self.logger.warning(f"Dropping line {line!r}: {e}")

    def _handle_init_line(self, line: str) -> None:
        if READY_MARKER not in line:
            return
        if self.table.self_key is None:
            self.logger.warning("cec-client ready but own device is unknown")
            return

        self.state = ClassifierState.READY
        self.logger.info("cec-client ready")
        self.bus.emit('ready')

    def _handle_power_status(self, line: str) -> None:
        value = get_line_value(line)

        with self.table.lock:
            record = self.table.targeted_record
            if record is None:
                self.logger.debug(f"Power status '{value}' with no targeted device")
                return
            record.power_status = value
            address = record.logical_address

        self.logger.debug(f"Power status of {address}: {value}")
        self.bus.emit(f'{address}:powerStatus', value)

    def _handle_active_source(self, line: str) -> None:
        if line.startswith('logical address'):
            value = ACTIVE_NO if 'not' in line else ACTIVE_YES
        else:
            value = get_line_value(line)

        with self.table.lock:
            record = self.table.self_record
            record.active_source = value
            address = record.logical_address

        self.logger.debug(f"Active source of {address}: {value}")
        self.bus.emit(f'{address}:activeSource', value)

    def _handle_traffic(self, line: str) -> None:
        cmd = CECCommand.from_traffic_line(line)
        self_address = int(self.table.self_record.logical_address, 16)

        if cmd.initiator != TV_ADDRESS or cmd.destination != self_address or not cmd.parameters:
            return

        code = get_line_value(line).upper()
        if cmd.opcode == CECOpcode.USER_CONTROL_PRESSED:
            self.keys.pressed(code)
        elif cmd.opcode == CECOpcode.VENDOR_REMOTE_BUTTON_UP:
            self.keys.released(code)
