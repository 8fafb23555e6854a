"""
Device Classes - device records, the shared device table and per-device facades

Records hold what the scan and the line classifier learn about each logical
address. Facades expose the operations a caller may run against a device;
only devices named "TV" get the source-switch capability.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from constants import POWER_ON, POWER_STANDBY


@dataclass
class DeviceRecord:
    """State of one logical address on the bus"""
    logical_address: str
    name: str
    osd_string: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    power_status: Optional[str] = None  # None until queried
    active_source: Optional[str] = None  # None until queried

    @property
    def key(self) -> str:
        return device_key(self.logical_address)


def device_key(logical_address: str) -> str:
    """Table key for a logical address ("0" -> "dev0")"""
    return 'dev' + logical_address


class DeviceTable:
    """
    Mapping from device key to DeviceRecord.

    Also tracks the session's own device ("self") and the device targeted by
    the most recent status query, which is where an incoming
    "power status:" line is recorded.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._records: Dict[str, DeviceRecord] = {}
        self._self_key: Optional[str] = None
        self.targeted_key: Optional[str] = None

    def add(self, record: DeviceRecord) -> None:
        with self.lock:
            self._records[record.key] = record

    def __getitem__(self, key: str) -> DeviceRecord:
        return self._records[key]

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def get(self, key: str) -> Optional[DeviceRecord]:
        return self._records.get(key)

    def records(self):
        return list(self._records.values())

    @property
    def self_key(self) -> Optional[str]:
        return self._self_key

    @self_key.setter
    def self_key(self, key: str) -> None:
        with self.lock:
            if key not in self._records:
                raise KeyError(key)
            if self._self_key is not None and self._self_key != key:
                raise ValueError(f"Self device already set to {self._self_key}")
            self._self_key = key

    @property
    def self_record(self) -> Optional[DeviceRecord]:
        if self._self_key is None:
            return None
        return self._records[self._self_key]

    @property
    def targeted_record(self) -> Optional[DeviceRecord]:
        if self.targeted_key is None:
            return None
        return self._records.get(self.targeted_key)


class CECDevice:
    """Generic device facade"""

    def __init__(self, record: DeviceRecord, client):
        """
        Initialize a device facade.

        Args:
            record: The device's record in the shared table
            client: CECClient used to run operations
        """
        self.record = record
        self.client = client
        self.logger = logging.getLogger(f'{self.__class__.__name__}({record.name})')

    @property
    def key(self) -> str:
        return self.record.key

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def logical_address(self) -> str:
        return self.record.logical_address

    @property
    def power_status(self) -> Optional[str]:
        return self.record.power_status

    @property
    def active_source(self) -> Optional[str]:
        return self.record.active_source

    def turn_on(self):
        """Power the device on; Future resolving to "on" or None"""
        self.logger.info("Turning on")
        return self.client.change_power(self.key, POWER_ON)

    def turn_off(self):
        """Put the device in standby; Future resolving to "standby" or None"""
        self.logger.info("Turning off")
        return self.client.change_power(self.key, POWER_STANDBY)

    def get_status(self):
        return self.client.get_status(self.key)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.key} {self.name!r}>"


class TV(CECDevice):
    """TV device, which can also switch HDMI inputs"""

    def change_source(self, port: Optional[int] = None):
        """
        Switch the TV to an HDMI input.

        Args:
            port: HDMI port number; omitted or invalid rotates through the
                configured ports

        Returns:
            Future from the raw command (liveness only, not a confirmation)
        """
        return self.client.change_source(self.key, port)


def make_device(record: DeviceRecord, client) -> CECDevice:
    """Build the facade matching the device's capabilities"""
    if record.name == 'TV':
        return TV(record, client)
    return CECDevice(record, client)
