"""
Periodic UDP beacon sender.

On every tick the sender builds one datagram and hands it to its transport:

    offset 0   2 bytes     marker 0x04 0x84
    offset 2   2 bytes     counter, little-endian, 1 on the first message
    offset 4   1024 bytes  random payload, new on every tick

The counter wraps to 0 after 65535. A failed tick is logged and the schedule
keeps running.
"""

import ipaddress
import logging
import struct
import threading
import time
from collections import namedtuple

from Crypto.Random import get_random_bytes

from beacon_errors import TransportError, UsageError
from console_logger import ConsoleLogger
from udp_transport import UdpTransport

MARKER = b"\x04\x84"
PAYLOAD_SIZE = 1024
HEADER_SIZE = len(MARKER) + 2
MESSAGE_SIZE = HEADER_SIZE + PAYLOAD_SIZE
COUNTER_MODULUS = 1 << 16

logger = logging.getLogger("UdpBeacon")


def build_message(counter: int, payload: bytes) -> bytes:
    """Marker, then the counter as little-endian uint16, then the payload."""
    if not 0 <= counter < COUNTER_MODULUS:
        raise ValueError(f"Counter {counter} does not fit in 16 bits")
    if len(payload) != PAYLOAD_SIZE:
        raise ValueError(f"Payload must be {PAYLOAD_SIZE} bytes, got {len(payload)}")
    return MARKER + struct.pack("<H", counter) + bytes(payload)


def default_transport():
    return UdpTransport()


def default_logger():
    return ConsoleLogger()


class SendResult(namedtuple("SendResult", ["counter", "error"])):
    """Outcome of one tick: the counter it used and the error, if any"""

    @property
    def ok(self) -> bool:
        return self.error is None


class RepeatingTimer(threading.Thread):
    """Thread that calls function right away and then every interval seconds.

    Calls never overlap. When a call overruns the interval the next one starts
    as soon as it returns, without catching up on the missed ones.
    """

    def __init__(self, interval, function, name="RepeatingTimer"):
        threading.Thread.__init__(self)
        self.daemon = True
        self.name = name
        self.interval = interval
        self.function = function
        self._cancelled = threading.Event()

    def cancel(self):
        """No call starts after this returns; a call already running finishes."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self):
        next_fire = time.monotonic()
        while not self._cancelled.is_set():
            try:
                self.function()
            except Exception as e:
                logger.error(f"Error in {self.name}: {e}")
            next_fire += self.interval
            now = time.monotonic()
            if next_fire < now:
                next_fire = now
            if self._cancelled.wait(next_fire - now):
                break


class BeaconSender:
    """Sends a beacon datagram to host:port on a fixed interval"""

    def __init__(self, host, port, transport=None, logger=None, random_bytes=None):
        if not isinstance(host, str):
            raise TypeError(f"Host must be an IP address string, got {host!r}")
        if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
            raise ValueError(f"Invalid port: {port!r}")
        self._host = host
        self._port = port
        self._transport = transport if transport is not None else default_transport()
        self._logger = logger if logger is not None else default_logger()
        self._random_bytes = random_bytes if random_bytes is not None else get_random_bytes
        self._counter = 0
        self._timer = None
        self._disposed = False
        self._state_lock = threading.Lock()
        # Held for the whole of a scheduled tick; reentrant so a tick may close its own sender
        self._tick_lock = threading.RLock()

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def counter(self) -> int:
        """Counter value of the most recent tick, 0 before the first one."""
        return self._counter

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    @property
    def destination(self) -> str:
        return f"{self._host}:{self._port}"

    def start(self, interval_ms: int) -> None:
        """Send one beacon now and then one every interval_ms milliseconds."""
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
            raise ValueError(f"Interval must be a positive number of milliseconds, got {interval_ms!r}")
        with self._state_lock:
            if self._disposed:
                raise UsageError("Sender has been disposed.")
            if self._timer is not None:
                raise UsageError("Sender is already running.")
            self._timer = RepeatingTimer(interval_ms / 1000.0, self._scheduled_tick,
                                         name=f"BeaconSender-{self.destination}")
            self._logger.log_info(
                f"Started sending UDP messages every {interval_ms}ms to {self.destination}")
            self._timer.start()

    def stop(self, wait=False) -> None:
        """Stop the schedule; a no-op when it is not running.

        With wait=True, block until a tick that is already running has
        finished (unless called from the tick itself).
        """
        with self._state_lock:
            timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        if wait and timer is not threading.current_thread():
            timer.join()
        self._logger.log_info("Stopped sending UDP messages")

    def close(self) -> None:
        """Stop and release the transport. Safe to call more than once.

        Waits for a tick that is still running so the transport is never
        used after it has been closed.
        """
        self.stop()
        with self._tick_lock:
            with self._state_lock:
                if self._disposed:
                    return
                self._disposed = True
            self._transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _resolve_address(self):
        try:
            ip = ipaddress.ip_address(self._host)
        except ValueError as e:
            raise TransportError(f"Invalid host address: {e}") from e
        return (str(ip), self._port)

    def _send_beacon(self) -> SendResult:
        # The counter moves on every tick, also when the send fails
        self._counter = (self._counter + 1) % COUNTER_MODULUS
        counter = self._counter
        try:
            message = build_message(counter, self._random_bytes(PAYLOAD_SIZE))
            address = self._resolve_address()
            self._transport.send(message, len(message), address)
        except TransportError as e:
            return SendResult(counter, e)
        except Exception as e:
            error = TransportError(str(e) or type(e).__name__)
            error.__cause__ = e
            return SendResult(counter, error)
        return SendResult(counter, None)

    def _scheduled_tick(self):
        with self._tick_lock:
            # A timer that was stopped or replaced does not get to send
            if threading.current_thread() is not self._timer:
                return
            self._tick()

    def _tick(self):
        result = self._send_beacon()
        if result.ok:
            self._logger.log_info(f"Message #{result.counter} sent to {self.destination}")
        else:
            self._logger.log_error(f"Error sending message: {result.error}")
