"""Small helpers: random strings, ASCII case folding, tokenising and interface lookup."""

from __future__ import annotations

import ipaddress
import random
import socket
import string
from dataclasses import dataclass
from typing import Iterator, Sequence

import psutil

LETTER_BYTES = string.digits + string.ascii_lowercase + string.ascii_uppercase

# Whitespace as defined by the SIP ABNF (SP / HTAB).
ABNF_WS = " \t"

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)

_COMMON_HEADERS = {
    "Via": "via",
    "via": "via",
    "From": "from",
    "from": "from",
    "To": "to",
    "to": "to",
    "Call-ID": "call-id",
    "call-id": "call-id",
    "Contact": "contact",
    "contact": "contact",
    "Cseq": "cseq",
    "CSEQ": "cseq",
    "cseq": "cseq",
    "Content-Type": "content-type",
    "content-type": "content-type",
    "Route": "route",
    "route": "route",
    "Record-Route": "record-route",
    "record-route": "record-route",
    "Timestamp": "timestamp",
    "timestamp": "timestamp",
}

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _random_letters(n: int) -> str:
    if n < 0:
        raise ValueError(f"length must not be negative, got {n}")
    return "".join(random.choices(LETTER_BYTES, k=n))


def rand_string(n: int) -> str:
    """Return a random alphanumeric string of length ``n``."""
    return _random_letters(n)


def nonce(n: int) -> str:
    """Return a random alphanumeric nonce of length ``n``."""
    return _random_letters(n)


def ascii_to_lower(s: str) -> str:
    """Lower-case ASCII letters only; every other character is kept as is."""
    return s.translate(_ASCII_LOWER)


def header_to_lower(s: str) -> str:
    """Lower-case a header name, with a fast path for the common ones."""
    known = _COMMON_HEADERS.get(s)
    return known if known is not None else ascii_to_lower(s)


def uri_is_sip(s: str) -> bool:
    """True if the scheme is ``sip``."""
    return s in ("sip", "SIP")


def uri_is_sips(s: str) -> bool:
    """True if the scheme is ``sips``."""
    return s in ("sips", "SIPS")


def split_by_whitespace(text: str) -> list[str]:
    """Split on runs of SIP whitespace.

    Leading whitespace yields an empty first element; trailing whitespace
    yields nothing.
    """
    result: list[str] = []
    word: list[str] = []
    in_word = True
    for char in text:
        if char in ABNF_WS:
            if in_word:
                result.append("".join(word))
                word.clear()
            in_word = False
        else:
            word.append(char)
            in_word = True
    if word:
        result.append("".join(word))
    return result


@dataclass(frozen=True)
class Delimiter:
    """A pair of characters enclosing literal text."""

    start: str
    end: str


QUOTES_DELIM = Delimiter('"', '"')
ANGLES_DELIM = Delimiter("<", ">")


def find_unescaped(text: str, target: str, *delims: Delimiter) -> int:
    """Index of the first ``target`` outside any delimiters, or -1."""
    return find_any_unescaped(text, target, *delims)


def find_any_unescaped(text: str, targets: str, *delims: Delimiter) -> int:
    """Index of the first of ``targets`` outside any delimiters, or -1."""
    end_chars = {d.start: d.end for d in delims}
    escaped = False
    end_escape = ""
    for idx, char in enumerate(text):
        if not escaped and char in targets:
            return idx
        if escaped:
            escaped = char != end_escape
        elif char in end_chars:
            end_escape = end_chars[char]
            escaped = True
    return -1


def _interface_networks(
    addrs: Sequence,
) -> Iterator[tuple[IPAddress, ipaddress.IPv4Network | ipaddress.IPv6Network]]:
    for entry in addrs:
        if entry.family not in (socket.AF_INET, socket.AF_INET6) or not entry.netmask:
            continue
        try:
            ip = ipaddress.ip_address(entry.address.split("%", 1)[0])
            mask = ipaddress.ip_address(entry.netmask.split("%", 1)[0])
        except ValueError:
            continue
        if mask.version != ip.version:
            continue
        prefix = bin(int(mask)).count("1")
        yield ip, ipaddress.ip_network(f"{ip}/{prefix}", strict=False)


def _is_loopback_interface(stats, addrs: Sequence) -> bool:
    flags = getattr(stats, "flags", "") if stats is not None else ""
    if flags:
        return "loopback" in flags.split(",")
    ips = [ip for ip, _ in _interface_networks(addrs)]
    return bool(ips) and all(ip.is_loopback for ip in ips)


def _pick_address(
    addrs: Sequence, network: str, target_ip: IPAddress | None
) -> IPAddress | None:
    for ip, net in _interface_networks(addrs):
        if target_ip is not None:
            if target_ip not in net:
                continue
        elif ip.is_loopback:
            continue

        if network == "ip4":
            if ip.version == 6:
                mapped = ip.ipv4_mapped
                if mapped is None:
                    continue
                ip = mapped
        return ip
    return None


def resolve_interfaces_ip(
    network: str, target_ip: IPAddress | str | None = None
) -> tuple[IPAddress, str]:
    """Find a local address and the name of its interface.

    ``network`` is ``"ip"``, ``"ip4"`` or ``"ip6"``. With ``target_ip`` the
    address must share a subnet with it; otherwise loopback addresses are
    skipped. Raises LookupError when nothing matches.
    """
    if isinstance(target_ip, str):
        target_ip = ipaddress.ip_address(target_ip)

    all_addrs = psutil.net_if_addrs()
    all_stats = psutil.net_if_stats()
    for name, addrs in all_addrs.items():
        stats = all_stats.get(name)
        if stats is None or not stats.isup:
            continue
        if _is_loopback_interface(stats, addrs):
            if target_ip is not None and not target_ip.is_loopback:
                continue
        ip = _pick_address(addrs, network, target_ip)
        if ip is not None:
            return ip, name

    raise LookupError("no interface found on system")


def resolve_self_ip() -> IPAddress:
    """Return the first non-loopback IPv4 address of this host."""
    ip, _ = resolve_interfaces_ip("ip4", None)
    return ip