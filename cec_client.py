"""
CEC Client - facade over the cec-client adapter process

Startup: scan the bus, find our own device by OSD name, then spawn the
persistent cec-client and wait for it to accept input. After that the client
answers queries and commands through the correlator and reports bus activity
as events (see CECClient.on).
"""

import logging
import subprocess
import threading
from concurrent.futures import Future
from typing import Callable, Dict, Optional

from cec_comms import CECComms, CECCommand, RealCECComms
from config import ClientOptions
from constants import BROADCAST_ADDRESS, CECOpcode
from correlator import CommandCorrelator, resolved
from devices import CECDevice, DeviceTable, make_device
from eventbus import CECEventBus
from key_edges import KeyEdgeDetector
from line_classifier import LineClassifier
from scan import parse_scan_output, resolve_self
from with_timeout import run_in_thread

# Physical address nibble limits the port number
MAX_SOURCE_PORT = 15


class CECError(Exception):
    """Base class for fatal client errors"""


class ScanError(CECError):
    """The scan command could not be run or failed"""


class NoDevicesError(CECError):
    """The scan found no devices"""


class SelfNotFoundError(CECError):
    """None of the scanned devices advertises our OSD name"""


class ProcessExitedError(CECError):
    """cec-client exited (or never started) before it was ready"""


class CECClient:
    """
    Supervises cec-client and exposes devices and global operations.

    Events (register with on/once):
        ready                    cec-client accepts commands
        error                    fatal startup error (CECError instance)
        <address>:powerStatus    power status string, or None on timeout
        <address>:activeSource   "yes"/"no", or None on timeout
        keypress, keydown, keyup key name from the TV remote
    """

    def __init__(self, options: Optional[ClientOptions] = None, comms: Optional[CECComms] = None):
        self.logger = logging.getLogger('CECClient')
        self.options = options or ClientOptions()
        self.comms = comms or RealCECComms(self.options.client_path)
        self.bus = CECEventBus()
        self.keys = KeyEdgeDetector(self.bus, self.options.key_release_timeout)

        self.table = DeviceTable()
        self.devices: Dict[str, CECDevice] = {}
        self.correlator: Optional[CommandCorrelator] = None
        self.classifier: Optional[LineClassifier] = None

        self.source_number = 0
        self._source_lock = threading.Lock()
        self._started: Optional[Future] = None
        self._closing = False

    # ===== Events =====

    def on(self, event: str, handler: Callable) -> None:
        self.bus.on(event, handler)

    def once(self, event: str, handler: Callable) -> None:
        self.bus.once(event, handler)

    def off(self, event: str, handler: Callable) -> None:
        self.bus.off(event, handler)

    # ===== Lifecycle =====

    def start(self, threaded: bool = True) -> Future:
        """
        Scan the bus and start cec-client.

        Args:
            threaded: Run the (slow) scan in a background thread

        Returns:
            Future resolving True once cec-client is ready, or failing with
            a CECError on a fatal startup error
        """
        if self._started is not None:
            return self._started

        self._started = Future()
        self.logger.info(f"Starting with {self.options}")

        if threaded:
            run_in_thread(self._startup, name='cec-startup')
        else:
            self._startup()
        return self._started

    def _startup(self) -> None:
        try:
            output = self.comms.scan(self.options.type, self.options.osd_string)
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            self._fail(ScanError(f"cec-client scan failed: {e}"))
            return

        try:
            table = parse_scan_output(output)
        except Exception as e:
            self._fail(ScanError(f"Could not parse cec-client scan output: {e}"))
            return

        if len(table) == 0:
            self._fail(NoDevicesError("CEC scan did not find any devices"))
            return

        self_key = resolve_self(table, self.options.osd_string)
        if self_key is None:
            self._fail(SelfNotFoundError(
                f"No scanned device advertises OSD name '{self.options.osd_string}'"))
            return

        table.self_key = self_key
        self.table = table
        self.devices = {record.key: make_device(record, self) for record in table.records()}
        self.logger.info(f"Own device is {self_key}, found {list(self.devices.values())}")

        self.correlator = CommandCorrelator(
            self.comms, table, self.bus,
            status_timeout=self.options.status_timeout,
            power_change_timeout=self.options.power_change_timeout,
            active_change_timeout=self.options.active_change_timeout,
        )
        self.classifier = LineClassifier(table, self.bus, self.keys)
        self.bus.once('ready', self._on_first_ready)

        self._spawn()

    def _spawn(self) -> None:
        self.classifier.reset()
        if not self.comms.init(self.options.type, self.options.osd_string,
                               self._on_line, self._on_exit):
            self._fail(ProcessExitedError("cec-client could not be started"))

    def _on_first_ready(self) -> None:
        if not self._started.done():
            self._started.set_result(True)

    def _on_line(self, line: str) -> None:
        self.classifier.feed_line(line)
        self.correlator.on_line(line)

    def _on_exit(self, code: Optional[int]) -> None:
        if self._closing:
            return

        # Commands sent to the dead process will never see output
        self.correlator.cancel_acks()

        if self.classifier.ready:
            self.logger.warning(f"cec-client exited with code {code}, restarting it")
            self._spawn()
        else:
            self._fail(ProcessExitedError(f"cec-client exited with code {code}"))

    def _fail(self, error: CECError) -> None:
        self.logger.error(str(error))
        self.bus.emit('error', error)
        if self._started is not None and not self._started.done():
            self._started.set_exception(error)

    def close(self) -> None:
        """Stop cec-client and resolve anything still pending with None"""
        self.logger.info("Closing CEC client")
        self._closing = True
        self.keys.cancel()
        if self.correlator is not None:
            self.correlator.close()
        self.comms.close()

    # ===== Devices =====

    @property
    def my_device(self) -> Optional[CECDevice]:
        if self.table.self_key is None:
            return None
        return self.devices[self.table.self_key]

    def get_status(self, key: str) -> Future:
        if self.correlator is None:
            return self._not_started()
        return self.correlator.get_status(key)

    def get_active(self, key: str) -> Future:
        if self.correlator is None:
            return self._not_started()
        return self.correlator.get_active(key)

    def change_power(self, key: str, power_status: str) -> Future:
        if self.correlator is None:
            return self._not_started()
        return self.correlator.change_power(key, power_status)

    def change_source(self, key: str, port: Optional[int] = None) -> Future:
        """
        Tell the TV at key to show HDMI input port.

        Without a usable port the next input in rotation (1..hdmi_ports) is used.
        """
        if self.correlator is None:
            return self._not_started()
        if key not in self.table:
            self.logger.warning(f"Unknown device {key}")
            return resolved(None)

        valid = isinstance(port, int) and not isinstance(port, bool) and 1 <= port <= MAX_SOURCE_PORT
        if not valid:
            with self._source_lock:
                last_port = min(self.options.hdmi_ports, MAX_SOURCE_PORT)
                self.source_number = self.source_number + 1 if self.source_number < last_port else 1
                port = self.source_number

        source = self.table.self_record.logical_address
        destination = BROADCAST_ADDRESS if self.options.broadcast else self.table[key].logical_address
        frame = CECCommand.build(
            int(source, 16), int(destination, 16), CECOpcode.ACTIVE_SOURCE, bytes([port << 4, 0x00])
        )
        self.logger.info(f"Switching {key} to HDMI {port}")
        return self.command(f'tx {frame}')

    # ===== Global operations =====

    def set_active(self) -> Future:
        return self._change_active(True)

    def set_inactive(self) -> Future:
        return self._change_active(False)

    def _change_active(self, active: bool) -> Future:
        if self.correlator is None:
            return self._not_started()
        return self.correlator.change_active(active)

    def volume_up(self) -> Future:
        return self.command('volup')

    def volume_down(self) -> Future:
        return self.command('voldown')

    def mute(self) -> Future:
        return self.command('mute')

    def command(self, action) -> Future:
        """Send a raw cec-client command; Future resolves True on the next output line"""
        if self.correlator is None:
            return self._not_started()
        return self.correlator.command(action)

    def _not_started(self) -> Future:
        self.logger.warning("CEC client is not started")
        return resolved(None)
