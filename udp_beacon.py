#!/usr/bin/env python3
"""
UDP beacon: sends a numbered 1028-byte datagram to a host/port on a fixed
interval, for exercising receivers and UDP endpoints.
"""

import os
import sys
import time
import json
import signal
import logging
import argparse
import threading
from datetime import datetime

import colorama

from beacon_sender import BeaconSender
from console_logger import DEFAULT_LOGGER_NAME, ConsoleLogger
from udp_transport import UdpTransport

# Default configuration, overridden by --config and then by the flags
CONFIG = {
    "host": "127.0.0.1",
    "port": 9999,
    "interval_ms": 1000,
    "duration": 0,  # seconds, 0 runs until interrupted
    "log_dir": "logs",
    "broadcast": False,
}

logger = logging.getLogger(DEFAULT_LOGGER_NAME)

stop_event = threading.Event()


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging():
    """Log to stdout"""
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def add_log_file(log_dir):
    """Also log to a dated file under log_dir; returns the new handler"""
    os.makedirs(log_dir, exist_ok=True)
    handler = logging.FileHandler(os.path.join(log_dir, f"beacon_{datetime.now().strftime('%Y%m%d')}.log"))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler


def load_config(path, base=None):
    """Return base (or CONFIG) updated with the known keys of a JSON file"""
    config = dict(CONFIG if base is None else base)
    try:
        with open(path, "r") as f:
            config_data = json.load(f)
        if not isinstance(config_data, dict):
            raise ValueError("top level must be a JSON object")
        for key, value in config_data.items():
            if key in config:
                config[key] = value
            else:
                logger.warning(f"Ignoring unknown configuration key '{key}'")
        logger.info(f"Loaded configuration from {path}")
    except Exception as e:
        logger.error(f"Error loading configuration: {e}")
        return dict(CONFIG if base is None else base)
    return config


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Periodic UDP beacon sender")
    parser.add_argument("--host", help="Destination IP address")
    parser.add_argument("--port", type=int, help="Destination UDP port")
    parser.add_argument("--interval", type=int, dest="interval_ms", help="Milliseconds between beacons")
    parser.add_argument("--duration", type=float, help="Seconds to run, 0 runs until interrupted")
    parser.add_argument("--config", help="Path to JSON configuration file")
    parser.add_argument("--log-dir", dest="log_dir", help="Directory for log files")
    parser.add_argument("--broadcast", action="store_true", default=None, help="Allow sending to broadcast addresses")
    return parser.parse_args(argv)


def build_config(args):
    """Merge defaults, the optional config file and command-line flags"""
    config = load_config(args.config) if args.config else dict(CONFIG)
    for key in CONFIG:
        value = getattr(args, key, None)
        if value is not None:
            config[key] = value
    return config


def signal_handler(sig, frame):
    """Handle signals to allow clean shutdown"""
    logger.info("Shutdown signal received")
    stop_event.set()


def run(config, stop=None):
    """Run a beacon with config until stop is set or the duration runs out"""
    if stop is None:
        stop = stop_event
    try:
        sender = BeaconSender(config["host"], config["port"],
                              transport=UdpTransport(broadcast=bool(config["broadcast"])),
                              logger=ConsoleLogger())
    except Exception as e:
        logger.error(f"Could not create beacon sender: {e}")
        return 1

    with sender:
        try:
            sender.start(int(config["interval_ms"]))
        except Exception as e:
            logger.error(f"Could not start beacon sender: {e}")
            return 1

        duration = float(config["duration"] or 0)
        deadline = time.monotonic() + duration if duration > 0 else None
        try:
            while not stop.is_set():
                if deadline is not None and time.monotonic() >= deadline:
                    break
                stop.wait(0.1)
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received. Exiting...")
        finally:
            sender.stop(wait=True)
        logger.info(f"Last beacon counter was {sender.counter}")
    return 0


def main(argv=None):
    """Main application entry point"""
    colorama.init()
    args = parse_args(argv)
    # Logging first, so loading the config file gets reported
    setup_logging()
    config = build_config(args)
    file_handler = add_log_file(config["log_dir"])

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info(f"Starting UDP beacon to {config['host']}:{config['port']}")
        return run(config)
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()


if __name__ == "__main__":
    sys.exit(main())
