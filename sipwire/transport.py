"""Transport names, network addresses and host:port parsing."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass

from .utils import ascii_to_lower

SIP_DEBUG = False

# -1: close after a single message, 0: close when the transaction ends,
# 1: keep the connection idle after the transaction ends.
IDLE_CONNECTION = 1

TRANSPORT_UDP = "UDP"
TRANSPORT_TCP = "TCP"
TRANSPORT_TLS = "TLS"
TRANSPORT_WS = "WS"
TRANSPORT_WSS = "WSS"

TRANSPORT_BUFFER_SIZE = 65535
TRANSPORT_FIXED_LENGTH_MESSAGE = 0

_NETWORKS = {
    "UDP": "udp",
    "TCP": "tcp",
    "TLS": "tls",
    "WS": "ws",
    "WSS": "wss",
}

_PORT_RE = re.compile(r"[+-]?[0-9]+")


def _join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass
class Addr:
    """A resolved network address, remembering the original host name."""

    ip: ipaddress.IPv4Address | ipaddress.IPv6Address | None = None
    port: int = 0
    hostname: str = ""

    def __str__(self) -> str:
        host = self.hostname if self.ip is None else str(self.ip)
        return _join_host_port(host, self.port)


def _split_host_port(addr: str) -> tuple[str, str]:
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise ValueError(f"address {addr}: missing ']' in address")
        host = addr[1:end]
        rest = addr[end + 1 :]
        if not rest:
            raise ValueError(f"address {addr}: missing port in address")
        if not rest.startswith(":") or ":" in rest[1:]:
            raise ValueError(f"address {addr}: unexpected characters after ']'")
        if "[" in host or "]" in host:
            raise ValueError(f"address {addr}: unexpected bracket in address")
        return host, rest[1:]

    colon = addr.rfind(":")
    if colon < 0:
        raise ValueError(f"address {addr}: missing port in address")
    host = addr[:colon]
    if ":" in host:
        raise ValueError(f"address {addr}: too many colons in address")
    if "[" in host or "]" in host:
        raise ValueError(f"address {addr}: unexpected bracket in address")
    return host, addr[colon + 1 :]


def parse_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into host and integer port."""
    host, port_str = _split_host_port(addr)
    if not _PORT_RE.fullmatch(port_str):
        raise ValueError(f"address {addr}: invalid port {port_str!r}")
    return host, int(port_str)


def is_reliable(network: str) -> bool:
    """False only for UDP."""
    return network not in ("udp", "UDP")


def network_to_lower(network: str) -> str:
    """Convert a transport name such as ``UDP`` to its network form ``udp``."""
    known = _NETWORKS.get(network)
    return known if known is not None else ascii_to_lower(network)