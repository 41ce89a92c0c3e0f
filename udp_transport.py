import socket
import threading

from beacon_errors import TransportError


class UdpTransport:
    """Sends datagrams over plain UDP sockets, one socket per address family"""

    def __init__(self, broadcast=False):
        self.broadcast = broadcast
        self._sockets = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _socket_for(self, family):
        with self._lock:
            if self._closed:
                raise TransportError("Transport is closed")
            sock = self._sockets.get(family)
            if sock is None:
                sock = socket.socket(family, socket.SOCK_DGRAM)
                if self.broadcast and family == socket.AF_INET:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
                self._sockets[family] = sock
            return sock

    def send(self, data: bytes, length: int, address) -> None:
        """Send the first length bytes of data to an (ip, port) address."""
        if length < 0 or length > len(data):
            raise ValueError(f"Invalid length {length} for {len(data)} bytes of data")
        family = socket.AF_INET6 if ":" in address[0] else socket.AF_INET
        sock = self._socket_for(family)
        sock.sendto(memoryview(data)[:length], address)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sockets = list(self._sockets.values())
            self._sockets.clear()
        for sock in sockets:
            sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
