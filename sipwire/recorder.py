"""Test doubles: a connection that records what is written and a recording server transaction."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable

from .server_tx import ServerTx, TxTimers


class ConnRecorder:
    """A connection that keeps every written message instead of sending it."""

    def __init__(self) -> None:
        self.msgs: list[Any] = []
        self._lock = threading.Lock()
        self._ref = 0

    def local_addr(self) -> str | None:
        """A recorder has no local address."""
        return None

    def write_msg(self, msg: Any) -> None:
        """Record ``msg``."""
        with self._lock:
            self.msgs.append(msg)

    def ref(self, i: int) -> int:
        """Add ``i`` to the reference count and return the new count."""
        with self._lock:
            self._ref += i
            return self._ref

    def try_close(self) -> int:
        """Drop one reference and return the new count; nothing is closed."""
        with self._lock:
            self._ref -= 1
            return self._ref

    def close(self) -> None:
        """Closing a recorder does nothing."""


def _clone(msg: Any) -> Any:
    clone = getattr(msg, "clone", None)
    if callable(clone):
        return clone()
    return copy.deepcopy(msg)


class ServerTxRecorder(ServerTx):
    """A server transaction, already initialised, whose responses are recorded."""

    def __init__(
        self,
        req: Any,
        key: str = "",
        *,
        timers: TxTimers | None = None,
        trying: Callable[[Any], Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.recorder = ConnRecorder()
        super().__init__(
            key, req, self.recorder, timers=timers, trying=trying, logger=logger
        )
        self.init()

    def result(self) -> list[Any] | None:
        """Copies of the responses written so far, or None if there are none."""
        with self.recorder._lock:
            msgs = list(self.recorder.msgs)
        if not msgs:
            return None
        return [_clone(m) for m in msgs]