import logging

from colorama import Fore, Style

DEFAULT_LOGGER_NAME = "UdpBeacon"


class ConsoleLogger:
    """Logger sink for the beacon sender, backed by the logging module"""

    def __init__(self, name=DEFAULT_LOGGER_NAME):
        self.logger = logging.getLogger(name)

    def log_info(self, text: str) -> None:
        self.logger.info(text)

    def log_error(self, text: str) -> None:
        self.logger.error(f"{Fore.RED}Error: {text}{Style.RESET_ALL}")
