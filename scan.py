"""
Scan output parsing and self-device resolution

cec-client prints one block per device for the "scan" command:

    device #0: TV
    address:       0.0.0.0
    active source: no
    vendor:        Samsung
    osd string:    TV
    CEC version:   1.4
    power status:  on
    language:      eng
"""

import logging
import re
from typing import Optional

from devices import DeviceRecord, DeviceTable

logger = logging.getLogger('ScanParser')

DEVICE_DELIMITER = 'device #'


def normalize_key(key: str) -> str:
    """Turn a scan label into lower camel case ("OSD string" -> "osdString")"""
    words = [w for w in re.split(r'[\s_-]+', key.strip().lower()) if w]
    if not words:
        return ''
    return words[0] + ''.join(w[:1].upper() + w[1:] for w in words[1:])


def parse_device_chunk(chunk: str) -> Optional[DeviceRecord]:
    """
    Parse the text following one "device #" delimiter.

    Returns:
        DeviceRecord, or None when the chunk has no address or name
    """
    first_line, _, rest = chunk.partition('\n')
    address, colon, name = first_line.partition(':')
    address = address.strip()
    name = name.strip()

    if not colon or not address or not name:
        return None

    attributes = {}
    for line in rest.split('\n'):
        params = line.split(':')
        # Anything that is not "key: value" ends the block (log noise, blank lines)
        if len(params) != 2:
            break
        key = normalize_key(params[0])
        if key:
            attributes[key] = params[1].strip()

    return DeviceRecord(
        logical_address=address,
        name=name,
        osd_string=attributes.get('osdString'),
        attributes=attributes,
        power_status=attributes.get('powerStatus'),
        active_source=attributes.get('activeSource'),
    )


def parse_scan_output(output: str) -> DeviceTable:
    """
    Build a device table from cec-client scan output.

    Args:
        output: Full stdout of the scan command

    Returns:
        DeviceTable with one record per valid device block
    """
    table = DeviceTable()

    for chunk in output.split(DEVICE_DELIMITER):
        record = parse_device_chunk(chunk)
        if record is None:
            continue
        table.add(record)
        logger.debug(f"Found {record.key}: {record.name} ({record.osd_string})")

    logger.info(f"Scan found {len(table)} device(s)")
    return table


def resolve_self(table: DeviceTable, osd_string: str) -> Optional[str]:
    """Key of the first device advertising osd_string, or None"""
    for record in table.records():
        if record.osd_string == osd_string:
            return record.key
    return None
