# sipwire

Building blocks for SIP (RFC 3261) user agents: SIP URIs, host:port
handling, reference-counted UDP connections and the server transaction state
machine. The state machine includes the RFC 6026 accepted state for INVITE
transactions.

## Installation

```
pip install sipwire
```

To run the test suite:

```
pip install "sipwire[test]"
pytest
```

## Modules

- `sipwire.utils`
  - `rand_string` and `nonce` return random alphanumeric strings.
  - `ascii_to_lower` lowercases ASCII letters only.
  - `header_to_lower` normalises header names.
  - `uri_is_sip` and `uri_is_sips` check a URI scheme.
  - `split_by_whitespace` splits on runs of spaces and tabs.
  - `find_unescaped` and `find_any_unescaped` search text and skip anything
    inside `Delimiter` pairs, such as `QUOTES_DELIM` and `ANGLES_DELIM`.
  - `resolve_interfaces_ip` and `resolve_self_ip` find a local address of
    this host, using `psutil`. They raise `LookupError` when no interface
    matches.
- `sipwire.transport`
  - `Addr` holds an IP, a port and the original hostname.
  - `parse_addr` splits `host:port` or `[v6]:port` and raises `ValueError`
    on bad input.
  - `is_reliable` is false only for UDP.
  - `network_to_lower` turns a transport name into its network form, for
    example `UDP` into `udp`.
  - The module also defines the transport name constants
    (`TRANSPORT_UDP`, `TRANSPORT_TCP`, …) and the `SIP_DEBUG` switch.
- `sipwire.uri`
  - `Uri` is a dataclass for `sip:` and `sips:` URIs. Its `uri_params` and
    `headers` are dicts.
  - It has the helpers `clone()`, `is_encrypted()`, `endpoint()`, `addr()`
    and `host_port()`.
- `sipwire.udp`
  - `UDPConnection` wraps a UDP socket and counts references to it with
    `ref` and `try_close`. It can be unconnected, connected or a listener.
  - `write_msg` serialises a message with `str()` (bytes are sent as they
    are). It raises `UDPMTUCongestionError` when the result is larger than
    `UDP_MTU_SIZE - 200` bytes.
  - An unconnected socket sends to the message's `destination`, which must
    be an `ip:port` string.
- `sipwire.server_tx`
  - `ServerTx` is the server transaction. It uses timers G, H, I, J and L,
    plus an optional automatic `100 Trying` for INVITE, built by the
    `trying` callable you pass in.
  - `TxTimers` holds the timer durations in seconds.
  - Transport failures are recorded as `TransportError` and can be read with
    `err()`.
- `sipwire.recorder`
  - `ConnRecorder` is a connection that keeps the messages written to it.
  - `ServerTxRecorder` is an already initialised `ServerTx` on a recorder.
    Its `result()` returns copies of the responses written so far, or
    `None` if there are none.

## Example

```python
import ipaddress

from sipwire.transport import Addr, is_reliable, parse_addr
from sipwire.uri import Uri

uri = Uri(user="alice", host="example.com", port=5060)
print(uri)              # sip:alice@example.com:5060
print(uri.addr())       # sip:alice@example.com:5060
print(uri.host_port())  # example.com:5060

host, port = parse_addr("127.0.0.1:5060")
print(Addr(ip=ipaddress.ip_address(host), port=port))  # 127.0.0.1:5060
print(is_reliable("UDP"))                              # False
```

## Server transactions

`ServerTx` works with any message objects, checking their attributes
directly:

- Requests need `method` and `transport`.
- Responses need `status_code`. They may also have `method`, the CSeq
  method. A response whose method is `CANCEL` is written straight to the
  connection.
- The connection needs `write_msg`.

A transaction is used like this:

1. Call `init()` to start it.
2. Pass incoming retransmissions, ACKs and CANCELs to `receive()`.
3. Send responses with `respond()`.

ACK and CANCEL requests that the transaction passes up appear on the queues
returned by `acks()` and `cancels()`. `state()` names the current state, for
example `proceeding`, `completed`, `confirmed`, `accepted` or `terminated`.
`on_terminate(callback)` registers a function that is called once with the
transaction key when the transaction ends.

```python
from dataclasses import dataclass

from sipwire.recorder import ServerTxRecorder


@dataclass
class Req:
    method: str
    transport: str = "UDP"


@dataclass
class Res:
    status_code: int
    method: str = "OPTIONS"


tx = ServerTxRecorder(Req("OPTIONS"), key="tx-1")
tx.respond(Res(200))
print(tx.state())               # completed
print(tx.result()[0].status_code)  # 200
tx.terminate()
```

## What this package does not do

- It has no SIP message parser and no request or response types. You supply
  your own message objects.
- It has UDP connections only. There are no TCP, TLS or WebSocket
  connections and no connection pool.
- There is no transport or transaction layer that listens, dispatches
  incoming messages or resolves names through DNS.
- There are no client transactions and no command-line program.