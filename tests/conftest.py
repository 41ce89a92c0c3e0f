import threading

import pytest


class FakeTransport:
    """Records every datagram; fails the sends listed in fail_on (1-based)"""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.sent = []
        self.attempts = 0
        self.close_calls = 0
        self.sent_event = threading.Condition()

    def send(self, data, length, address):
        with self.sent_event:
            self.attempts += 1
            if self.attempts in self.fail_on:
                raise OSError(f"network unreachable on attempt {self.attempts}")
            self.sent.append((bytes(data[:length]), address))
            self.sent_event.notify_all()

    def wait_for(self, count, timeout=2.0):
        with self.sent_event:
            return self.sent_event.wait_for(lambda: len(self.sent) >= count, timeout)

    def close(self):
        self.close_calls += 1


class FakeLogger:
    def __init__(self):
        self.infos = []
        self.errors = []

    def log_info(self, text):
        self.infos.append(text)

    def log_error(self, text):
        self.errors.append(text)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_logger():
    return FakeLogger()


@pytest.fixture
def zero_bytes():
    return lambda n: bytes(n)


@pytest.fixture
def make_transport():
    return FakeTransport
