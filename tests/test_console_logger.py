import logging

from colorama import Fore

from console_logger import DEFAULT_LOGGER_NAME, ConsoleLogger


def test_info_goes_to_named_logger(caplog):
    caplog.set_level(logging.INFO, logger=DEFAULT_LOGGER_NAME)
    ConsoleLogger().log_info("Message #1 sent to 127.0.0.1:9999")
    assert [(r.name, r.levelno, r.getMessage()) for r in caplog.records] == [
        (DEFAULT_LOGGER_NAME, logging.INFO, "Message #1 sent to 127.0.0.1:9999")
    ]


def test_error_is_prefixed_and_coloured(caplog):
    caplog.set_level(logging.INFO, logger="beacon.test")
    ConsoleLogger("beacon.test").log_error("Error sending message: boom")
    record = caplog.records[0]
    assert record.levelno == logging.ERROR
    assert record.getMessage().startswith(Fore.RED + "Error: Error sending message: boom")

