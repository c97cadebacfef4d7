"""The SIP URI: ``sip:user:password@host:port;params?headers``."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

_EMPTY = ""


def _render_params(params: dict[str, str], sep: str) -> str:
    return sep.join(key if value == "" else f"{key}={value}" for key, value in params.items())


@dataclass
class Uri:
    """A parsed SIP or SIPS URI."""

    encrypted: bool = False
    wildcard: bool = False
    user: str = _EMPTY
    password: str = _EMPTY
    host: str = _EMPTY
    port: int = 0
    uri_params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = ["sips:" if self.is_encrypted() else "sip:"]
        if self.user:
            parts.append(self.user)
            if self.password:
                parts.append(f":{self.password}")
            parts.append("@")
        parts.append(self.host)
        if self.port > 0:
            parts.append(f":{self.port}")
        if self.uri_params:
            parts.append(";" + _render_params(self.uri_params, ";"))
        if self.headers:
            parts.append("?" + _render_params(self.headers, "&"))
        return "".join(parts)

    def clone(self) -> Uri:
        """Return a copy whose parameter maps are independent of this one."""
        return dataclasses.replace(
            self, uri_params=dict(self.uri_params), headers=dict(self.headers)
        )

    def is_encrypted(self) -> bool:
        """True for a SIPS URI."""
        return self.encrypted

    def endpoint(self) -> str:
        """``user@host[:port]``."""
        addr = f"{self.user}@{self.host}"
        if self.port > 0:
            addr += f":{self.port}"
        return addr

    def addr(self) -> str:
        """``sip[s]:user@host[:port]`` without parameters or headers."""
        scheme = "sips:" if self.encrypted else "sip:"
        return scheme + self.endpoint()

    def host_port(self) -> str:
        """``host:port``, with the port always present."""
        return f"{self.host}:{self.port}"