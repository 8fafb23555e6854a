"""
Command/Response Correlator - issues cec-client commands and resolves their answers

cec-client answers carry no request id, so an answer is matched to a query by
the event it produces ("<address>:powerStatus" / "<address>:activeSource").
Every query is bounded by a deadline that resolves it with None.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

from cec_comms import CECComms
from constants import (
    ACTIVE_CHANGE_TIMEOUT, ACTIVE_NO, ACTIVE_YES, POWER_CHANGE_TIMEOUT,
    STATUS_TIMEOUT, STATUS_UNKNOWN,
)
from devices import DeviceTable
from eventbus import CECEventBus
from with_timeout import poll_until, run_in_thread

POWER_STATUS = 'powerStatus'
ACTIVE_SOURCE = 'activeSource'

CorrelationKey = Tuple[str, str]  # (logical address, event kind)


def resolved(value) -> Future:
    """A Future that is already done with value"""
    future = Future()
    future.set_result(value)
    return future


@dataclass
class PendingCorrelation:
    future: Future
    timer: threading.Timer
    on_timeout: Callable[[], None]


class RequestRegistry:
    """
    Outstanding queries keyed by (logical address, event kind).

    At most one query per key is armed. Each resolves exactly once, either
    from a matching event or from its deadline.
    """

    def __init__(self):
        self.logger = logging.getLogger('RequestRegistry')
        self._pending: Dict[CorrelationKey, PendingCorrelation] = {}
        self._lock = threading.Lock()

    def is_armed(self, key: CorrelationKey) -> bool:
        with self._lock:
            return key in self._pending

    def arm(self, key: CorrelationKey, timeout: float,
            on_timeout: Callable[[], None]) -> Tuple[Future, bool]:
        """
        Arm a query for key, or join the one already armed.

        Returns:
            (future, True) for a newly armed query, (future, False) when an
            armed query for the same key is shared
        """
        with self._lock:
            pending = self._pending.get(key)
            if pending is not None:
                return pending.future, False

            future = Future()
            timer = threading.Timer(timeout, self._expire, args=(key, future))
            timer.daemon = True
            self._pending[key] = PendingCorrelation(future, timer, on_timeout)
            timer.start()
            return future, True

    def resolve(self, key: CorrelationKey, value) -> bool:
        """Resolve the armed query for key with value; False if none is armed"""
        with self._lock:
            pending = self._pending.pop(key, None)
        if pending is None:
            return False

        pending.timer.cancel()
        pending.future.set_result(value)
        return True

    def _expire(self, key: CorrelationKey, future: Future) -> None:
        with self._lock:
            pending = self._pending.get(key)
            if pending is None or pending.future is not future:
                return

        # The key stays armed while on_timeout runs, so the None it emits
        # can only resolve this query and never one armed afterwards
        self.logger.info(f"No {key[1]} answer from device {key[0]}")
        try:
            pending.on_timeout()
        finally:
            with self._lock:
                if self._pending.get(key) is pending:
                    del self._pending[key]
                else:
                    pending = None
            if pending is not None:
                future.set_result(None)

    def cancel_all(self) -> None:
        """Resolve every armed query with None (used on close)"""
        with self._lock:
            pending, self._pending = list(self._pending.values()), {}
        for entry in pending:
            entry.timer.cancel()
            entry.future.set_result(None)


class CommandCorrelator:
    """Sends commands to cec-client and correlates them with classified events"""

    def __init__(self, comms: CECComms, table: DeviceTable, bus: CECEventBus,
                 status_timeout: float = STATUS_TIMEOUT,
                 power_change_timeout: float = POWER_CHANGE_TIMEOUT,
                 active_change_timeout: float = ACTIVE_CHANGE_TIMEOUT,
                 poll_interval: float = 0.0):
        self.logger = logging.getLogger('CommandCorrelator')
        self.comms = comms
        self.table = table
        self.bus = bus
        self.status_timeout = status_timeout
        self.power_change_timeout = power_change_timeout
        self.active_change_timeout = active_change_timeout
        self.poll_interval = poll_interval
        self.registry = RequestRegistry()
        self._acks: List[Future] = []
        self._ack_lock = threading.Lock()

        for record in table.records():
            address = record.logical_address
            for kind in (POWER_STATUS, ACTIVE_SOURCE):
                bus.on(f'{address}:{kind}', partial(self._on_answer, (address, kind)))

    def _on_answer(self, key: CorrelationKey, value) -> None:
        self.registry.resolve(key, value)

    def on_line(self, line: str) -> None:
        """Acknowledge every command waiting for cec-client output"""
        with self._ack_lock:
            acks, self._acks = self._acks, []
        for future in acks:
            future.set_result(True)

    def command(self, action, logical_address: Optional[str] = None) -> Future:
        """
        Write a command line to cec-client.

        The Future resolves True on the next line cec-client prints, whatever
        that line is. It is a liveness check, not an answer to the command.

        Args:
            action: Command text, e.g. "pow" or "tx 4F:82:10:00"
            logical_address: Appended to the command when given

        Returns:
            Future resolving True, False if the write failed, or None for an
            empty action
        """
        if not action or not isinstance(action, str):
            return resolved(None)

        line = f'{action} {logical_address}' if logical_address else action
        future = Future()

        with self._ack_lock:
            self._acks.append(future)

        if not self.comms.write(line):
            with self._ack_lock:
                if future not in self._acks:
                    # Output already arrived and acknowledged it
                    return future
                self._acks.remove(future)
            future.set_result(False)

        return future

    def get_status(self, key: str) -> Future:
        """Query a device's power status; Future resolving to the status or None"""
        record = self.table.get(key)
        if record is None:
            self.logger.warning(f"Unknown device {key}")
            return resolved(None)

        address = record.logical_address
        with self.table.lock:
            self.table.targeted_key = key

        future, armed = self.registry.arm(
            (address, POWER_STATUS), self.status_timeout,
            partial(self._mark_unknown, key, POWER_STATUS)
        )
        if armed:
            self.command(f'pow {address}')
        return future

    def get_active(self, key: str) -> Future:
        """Query whether a device is the active source; Future resolving to "yes"/"no" or None"""
        record = self.table.get(key)
        if record is None:
            self.logger.warning(f"Unknown device {key}")
            return resolved(None)

        address = record.logical_address
        with self.table.lock:
            self.table.targeted_key = key

        future, armed = self.registry.arm(
            (address, ACTIVE_SOURCE), self.status_timeout,
            partial(self._mark_unknown, key, ACTIVE_SOURCE)
        )
        if armed:
            self.command(f'ad {address}')
        return future

    def _mark_unknown(self, key: str, kind: str) -> None:
        with self.table.lock:
            record = self.table[key]
            if kind == POWER_STATUS:
                record.power_status = STATUS_UNKNOWN
            else:
                record.active_source = STATUS_UNKNOWN
            address = record.logical_address

        self.bus.emit(f'{address}:{kind}', None)

    def change_power(self, key: str, power_status: str) -> Future:
        """
        Bring a device to power_status ("on" or "standby").

        Returns:
            Future resolving to power_status once observed, or None when the
            device did not answer or did not get there in time
        """
        return run_in_thread(self._change_power, key, power_status, name=f'change-power-{key}')

    def _change_power(self, key: str, power_status: str) -> Optional[str]:
        record = self.table.get(key)
        if record is None:
            self.logger.warning(f"Unknown device {key}")
            return None

        current = self.get_status(key).result()
        if current is None:
            return None
        if current == power_status:
            return power_status

        self.logger.info(f"Changing power of {key} from '{current}' to '{power_status}'")
        self.command(power_status, record.logical_address)

        return poll_until(
            lambda: self.get_status(key),
            lambda status: status == power_status,
            self.power_change_timeout,
            self.poll_interval,
            name=f'power {key}',
        )

    def change_active(self, active_source) -> Future:
        """
        Make this device the active source (True/"yes") or give it up.

        Returns:
            Future resolving to "yes"/"no" once observed, or None
        """
        active = ACTIVE_YES if active_source in (True, ACTIVE_YES) else ACTIVE_NO
        return run_in_thread(self._change_active, active, name='change-active')

    def _change_active(self, active: str) -> Optional[str]:
        self_key = self.table.self_key

        current = self.get_active(self_key).result()
        if current is None:
            return None
        if current == active:
            return active

        self.logger.info(f"Changing active source from '{current}' to '{active}'")
        self.command('as' if active == ACTIVE_YES else 'is')

        return poll_until(
            lambda: self.get_active(self_key),
            lambda value: value == active,
            self.active_change_timeout,
            self.poll_interval,
            name='active source',
        )

    def cancel_acks(self) -> None:
        """Resolve commands still waiting for output with None"""
        with self._ack_lock:
            acks, self._acks = self._acks, []
        for future in acks:
            future.set_result(None)

    def close(self) -> None:
        self.registry.cancel_all()
        self.cancel_acks()
