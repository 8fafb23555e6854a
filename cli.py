#!/usr/bin/env python3
"""
CEC Bridge - runs the cec-client bridge and logs what happens on the bus

Usage: cec-bridge [config.yaml]
"""
import logging
import signal
import sys

import yaml

from cec_client import CECClient, CECError
from config import ClientOptions, load_config, setup_logging


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else None

    config = {}
    if config_path:
        try:
            config = load_config(config_path)
        except FileNotFoundError:
            print(f"Error: Configuration file '{config_path}' not found", file=sys.stderr)
            sys.exit(1)
        except yaml.YAMLError as e:
            print(f"Error parsing configuration file: {e}", file=sys.stderr)
            sys.exit(1)

    setup_logging(config)
    logger = logging.getLogger('CECBridge')
    logger.info("Starting CEC bridge")

    client = CECClient(ClientOptions.from_config(config))

    for event in ('keydown', 'keypress', 'keyup'):
        client.on(event, lambda key, event=event: logger.info(f"{event}: {key}"))

    # Setup signal handlers for graceful shutdown
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        client.close()
        logger.info("CEC bridge stopped")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        client.start(threaded=False).result()
    except CECError as e:
        logger.error(f"Failed to start: {e}")
        client.close()
        sys.exit(1)

    for device in client.devices.values():
        client.on(f'{device.logical_address}:powerStatus',
                  lambda value, device=device: logger.info(f"{device.name} power status: {value}"))
        client.on(f'{device.logical_address}:activeSource',
                  lambda value, device=device: logger.info(f"{device.name} active source: {value}"))

    logger.info(f"CEC bridge running as {client.my_device}, waiting for events...")

    # Block until a signal arrives; cec-client output is handled on the reader thread
    signal.pause()


if __name__ == "__main__":
    main()
