"""Datagram connections for the UDP transport."""

from __future__ import annotations

import logging
import socket
import threading

from . import transport as _transport
from .transport import TRANSPORT_BUFFER_SIZE, Addr, parse_addr

log = logging.getLogger(__name__)

UDP_MTU_SIZE = 1500

# Create connected UDP sockets instead of reusing unconnected ones.
UDP_USE_CONNECTED_CONNECTION = False


class UDPMTUCongestionError(OSError):
    """The serialised message is too large to be sent over UDP."""

    def __init__(self, message: str = "size of packet larger than MTU") -> None:
        super().__init__(message)


def _format_sockaddr(sockaddr: object) -> str:
    if isinstance(sockaddr, tuple) and len(sockaddr) >= 2:
        return str(Addr(hostname=str(sockaddr[0]), port=int(sockaddr[1])))
    return str(sockaddr)


def _marshal(msg: object) -> bytes:
    if isinstance(msg, (bytes, bytearray, memoryview)):
        return bytes(msg)
    return str(msg).encode("utf-8")


def _message_destination(msg: object) -> str:
    dst = getattr(msg, "destination", None)
    if callable(dst):
        dst = dst()
    if not isinstance(dst, str):
        raise ValueError("message has no destination address")
    return dst


class UDPConnection:
    """A reference-counted UDP socket.

    An unconnected socket sends each message to the message's destination;
    a connected one sends to its fixed peer. A listener socket is never
    closed through reference counting.
    """

    def __init__(
        self,
        sock: socket.socket,
        *,
        connected: bool = False,
        listener: bool = False,
        refcount: int = 0,
    ) -> None:
        self._sock = sock
        self.connected = connected
        self.listener = listener
        self._lock = threading.Lock()
        self._refcount = refcount
        self._closed = False
        self.packet_addr = "" if connected else _format_sockaddr(sock.getsockname())

    @property
    def sock(self) -> socket.socket:
        """The wrapped socket."""
        return self._sock

    def local_addr(self) -> str:
        """Local ``host:port`` of the socket."""
        return _format_sockaddr(self._sock.getsockname())

    def remote_addr(self) -> str:
        """Peer ``host:port``; the local address for an unconnected socket."""
        if self.connected:
            return _format_sockaddr(self._sock.getpeername())
        return self.local_addr()

    def _describe(self) -> str:
        try:
            return f"{self.local_addr()} -> {self.remote_addr()}"
        except OSError:
            return "<closed>"

    def ref(self, i: int) -> int:
        """Add ``i`` to the reference count and return the new count."""
        with self._lock:
            self._refcount += i
            return self._refcount

    def close(self) -> None:
        """Close the socket and reset the reference count.

        A listener socket is left open. Closing twice raises OSError.
        """
        with self._lock:
            self._refcount = 0
        if self.listener and not self.connected:
            return
        if self._closed:
            raise OSError("use of closed network connection")
        log.debug("UDP doing hard close %s", self._describe())
        self._closed = True
        self._sock.close()

    def try_close(self) -> int:
        """Drop one reference; close the socket when the count reaches zero."""
        with self._lock:
            self._refcount -= 1
            ref = self._refcount
        if self.listener:
            return ref
        log.debug("UDP reference decrement %s ref=%d", self._describe(), ref)
        if ref > 0:
            return ref
        if ref < 0:
            log.warning("UDP ref went negative %s ref=%d", self._describe(), ref)
            return 0
        self.close()
        return ref

    def read(self, size: int = TRANSPORT_BUFFER_SIZE) -> bytes:
        """Receive one datagram of at most ``size`` bytes."""
        data = self._sock.recv(size)
        if _transport.SIP_DEBUG:
            log.debug("UDP read %s:\n%s", self._describe(), data.decode("utf-8", "replace"))
        return data

    def read_from(self, size: int = TRANSPORT_BUFFER_SIZE) -> tuple[bytes, str]:
        """Receive one datagram and the ``host:port`` it came from."""
        data, sockaddr = self._sock.recvfrom(size)
        source = _format_sockaddr(sockaddr)
        if _transport.SIP_DEBUG:
            log.debug(
                "UDP read from %s <- %s:\n%s",
                self.local_addr(),
                source,
                data.decode("utf-8", "replace"),
            )
        return data, source

    def write(self, data: bytes) -> int:
        """Send ``data`` to the connected peer; return bytes sent."""
        sent = self._sock.send(data)
        if _transport.SIP_DEBUG:
            log.debug(
                "UDP write %s:\n%s", self._describe(), data[:sent].decode("utf-8", "replace")
            )
        return sent

    def write_to(self, data: bytes, addr: str | tuple[str, int]) -> int:
        """Send ``data`` to ``addr`` (``host:port`` or a tuple); return bytes sent."""
        target = parse_addr(addr) if isinstance(addr, str) else addr
        sent = self._sock.sendto(data, target)
        if _transport.SIP_DEBUG:
            log.debug(
                "UDP write to %s -> %s:\n%s",
                self.local_addr(),
                _format_sockaddr(target),
                data[:sent].decode("utf-8", "replace"),
            )
        return sent

    def write_msg(self, msg: object) -> None:
        """Serialise ``msg`` and send it as one datagram.

        Unconnected sockets send to the message's destination, which must
        already be resolved to ``ip:port``.
        """
        data = _marshal(msg)
        if len(data) > UDP_MTU_SIZE - 200:
            raise UDPMTUCongestionError()

        if self.connected:
            try:
                sent = self.write(data)
            except OSError as err:
                raise OSError(f"conn {self.local_addr()} write err={err}") from err
        else:
            dst = _message_destination(msg)
            host, port = parse_addr(dst)
            try:
                sent = self.write_to(data, (host, port))
            except OSError as err:
                raise OSError(f"udp conn {self.packet_addr} err. {err}") from err

        if sent == 0:
            raise OSError("wrote 0 bytes")
        if sent != len(data):
            raise OSError("fail to write full message")