"""
Configuration - client options, YAML config file and logging setup
"""

import logging
import sys
from typing import Any, Dict, Optional

import yaml

from constants import (
    ACTIVE_CHANGE_TIMEOUT, KEY_RELEASE_TIMEOUT, POWER_CHANGE_TIMEOUT, STATUS_TIMEOUT,
)

DEFAULT_OSD_STRING = 'CEC-Control'
DEFAULT_DEVICE_TYPE = 'p'
DEFAULT_HDMI_PORTS = 3
MAX_OSD_LENGTH = 12

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ClientOptions:
    """
    Options accepted by CECClient.

    Invalid values fall back to the defaults instead of raising, so a partial
    or sloppy config still yields a working client.
    """

    def __init__(self, osd_string: Any = DEFAULT_OSD_STRING, type: Any = DEFAULT_DEVICE_TYPE,
                 hdmi_ports: Any = DEFAULT_HDMI_PORTS, broadcast: Any = True,
                 client_path: str = 'cec-client',
                 status_timeout: float = STATUS_TIMEOUT,
                 power_change_timeout: float = POWER_CHANGE_TIMEOUT,
                 active_change_timeout: float = ACTIVE_CHANGE_TIMEOUT,
                 key_release_timeout: float = KEY_RELEASE_TIMEOUT):
        """
        Args:
            osd_string: Name this adapter advertises on the bus (at most 12 characters)
            type: cec-client device type; only the first character is used
            hdmi_ports: Number of TV inputs change_source() rotates through
            broadcast: Send source changes to every device instead of only the TV
            client_path: cec-client executable
            status_timeout: Deadline for power/active-source queries (seconds)
            power_change_timeout: Deadline for turn_on()/turn_off() (seconds)
            active_change_timeout: Deadline for set_active()/set_inactive() (seconds)
            key_release_timeout: Window after the last key frame before keyup (seconds)
        """
        if isinstance(osd_string, str) and 0 < len(osd_string) <= MAX_OSD_LENGTH:
            self.osd_string = osd_string
        else:
            self.osd_string = DEFAULT_OSD_STRING

        self.type = type[0] if isinstance(type, str) and type else DEFAULT_DEVICE_TYPE

        if isinstance(hdmi_ports, int) and not isinstance(hdmi_ports, bool) and hdmi_ports > 0:
            self.hdmi_ports = hdmi_ports
        else:
            self.hdmi_ports = DEFAULT_HDMI_PORTS

        self.broadcast = broadcast is not False
        self.client_path = client_path
        self.status_timeout = float(status_timeout)
        self.power_change_timeout = float(power_change_timeout)
        self.active_change_timeout = float(active_change_timeout)
        self.key_release_timeout = float(key_release_timeout)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> 'ClientOptions':
        """Build options from a loaded config dict ("cec" and "timeouts" sections)"""
        config = config or {}
        cec = config.get('cec') or {}
        timeouts = config.get('timeouts') or {}

        return cls(
            osd_string=cec.get('osd_string', DEFAULT_OSD_STRING),
            type=cec.get('type', DEFAULT_DEVICE_TYPE),
            hdmi_ports=cec.get('hdmi_ports', DEFAULT_HDMI_PORTS),
            broadcast=cec.get('broadcast', True),
            client_path=cec.get('client_path', 'cec-client'),
            status_timeout=timeouts.get('status', STATUS_TIMEOUT),
            power_change_timeout=timeouts.get('power_change', POWER_CHANGE_TIMEOUT),
            active_change_timeout=timeouts.get('active_change', ACTIVE_CHANGE_TIMEOUT),
            key_release_timeout=timeouts.get('key_release', KEY_RELEASE_TIMEOUT),
        )

    def __repr__(self):
        return (f"ClientOptions(osd_string={self.osd_string!r}, type={self.type!r}, "
                f"hdmi_ports={self.hdmi_ports}, broadcast={self.broadcast})")


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: config_path does not exist
        yaml.YAMLError: the file is not valid YAML
    """
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def setup_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """Setup logging from the config's "logging" section"""
    log_config = (config or {}).get('logging') or {}
    level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_format = log_config.get('format', DEFAULT_LOG_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    log_file = log_config.get('file')
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=log_format, handlers=handlers)
