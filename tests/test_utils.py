import ipaddress
import socket
from types import SimpleNamespace
from unittest import mock

import psutil
import pytest

from sipwire.utils import (
    ANGLES_DELIM,
    LETTER_BYTES,
    QUOTES_DELIM,
    Delimiter,
    ascii_to_lower,
    find_any_unescaped,
    find_unescaped,
    header_to_lower,
    nonce,
    rand_string,
    resolve_interfaces_ip,
    resolve_self_ip,
    split_by_whitespace,
    uri_is_sip,
    uri_is_sips,
)


def _addr(family, address, netmask):
    return SimpleNamespace(family=family, address=address, netmask=netmask)


FAKE_ADDRS = {
    "lo": [_addr(socket.AF_INET, "127.0.0.1", "255.0.0.0")],
    "down0": [_addr(socket.AF_INET, "10.0.0.5", "255.255.255.0")],
    "eth0": [
        _addr(socket.AF_INET, "192.168.1.10", "255.255.255.0"),
        _addr(socket.AF_INET6, "fe80::1%eth0", "ffff:ffff:ffff:ffff::"),
    ],
}

FAKE_STATS = {
    "lo": SimpleNamespace(isup=True, flags="up,loopback,running"),
    "down0": SimpleNamespace(isup=False, flags=""),
    "eth0": SimpleNamespace(isup=True, flags="up,broadcast,running"),
}


@pytest.fixture
def fake_interfaces():
    with mock.patch.object(psutil, "net_if_addrs", return_value=FAKE_ADDRS), mock.patch.object(
        psutil, "net_if_stats", return_value=FAKE_STATS
    ):
        yield


def test_header_to_lower_content_type():
    assert header_to_lower("Content-Type") == "content-type"


@pytest.mark.parametrize("name", ["Via", "CSEQ", "Record-Route", "X-Custom-Header"])
def test_header_to_lower_matches_ascii_lower(name):
    assert header_to_lower(name) == ascii_to_lower(name)
    assert header_to_lower(name) == name.lower()


def test_ascii_to_lower_keeps_non_ascii():
    assert ascii_to_lower("ÄB") == "Äb"


def test_uri_scheme_checks():
    assert uri_is_sip("sip") and uri_is_sip("SIP")
    assert not uri_is_sip("sips")
    assert uri_is_sips("SIPS") and uri_is_sips("sips")
    assert not uri_is_sips("Sip")


@pytest.mark.parametrize("func", [rand_string, nonce])
def test_random_strings_length_and_alphabet(func):
    value = func(40)
    assert len(value) == 40
    assert set(value) <= set(LETTER_BYTES)
    assert func(0) == ""


def test_rand_string_negative_length():
    with pytest.raises(ValueError):
        rand_string(-1)


def test_split_by_whitespace():
    assert split_by_whitespace("SIP/2.0  200\tOK") == ["SIP/2.0", "200", "OK"]
    assert split_by_whitespace(" a") == ["", "a"]
    assert split_by_whitespace("a ") == ["a"]


def test_find_unescaped_plain():
    assert find_unescaped('"a;b";c', ";") == 2


def test_find_unescaped_quotes():
    assert find_unescaped('"a;b";c', ";", QUOTES_DELIM) == 5


def test_find_unescaped_angles():
    assert find_unescaped("<sip:a;x>;tag=1", ";", ANGLES_DELIM) == 9


def test_find_any_unescaped_not_found():
    assert find_any_unescaped('"a,b"', ",;", QUOTES_DELIM) == -1
    assert find_any_unescaped("a=b,c", ",;", Delimiter("(", ")")) == 3


def test_resolve_ip4_skips_loopback(fake_interfaces):
    ip, iface = resolve_interfaces_ip("ip4", None)
    assert ip == ipaddress.ip_address("192.168.1.10")
    assert iface == "eth0"
    assert not ip.is_loopback


def test_resolve_ip6_not_loopback(fake_interfaces):
    ip, iface = resolve_interfaces_ip("ip6", None)
    assert not ip.is_loopback
    assert iface == "eth0"


def test_resolve_loopback_target(fake_interfaces):
    ip, iface = resolve_interfaces_ip("ip4", ipaddress.ip_address("127.0.0.1"))
    assert ip.is_loopback
    assert iface == "lo"


def test_resolve_target_on_down_interface(fake_interfaces):
    with pytest.raises(LookupError):
        resolve_interfaces_ip("ip4", "10.0.0.7")


def test_resolve_self_ip(fake_interfaces):
    assert resolve_self_ip() == ipaddress.ip_address("192.168.1.10")


def test_resolve_real_loopback():
    ip, _ = resolve_interfaces_ip("ip4", ipaddress.ip_address("127.0.0.1"))
    assert ip.is_loopback
    assert ip.version == 4