"""SIP URIs, UDP connections, server transactions and test recorders."""

__version__ = "0.1.0"

__all__ = [
    "recorder",
    "server_tx",
    "transport",
    "udp",
    "uri",
    "utils",
]