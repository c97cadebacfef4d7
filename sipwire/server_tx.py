"""Server transaction state machines for INVITE and non-INVITE requests."""

from __future__ import annotations

import enum
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable

from .transport import is_reliable

_log = logging.getLogger(__name__)


@dataclass
class TxTimers:
    """Transaction timer durations in seconds."""

    t2: float = 4.0
    timer_g: float = 0.5
    timer_h: float = 32.0
    timer_i: float = 5.0
    timer_j: float = 32.0
    timer_l: float = 32.0
    timer_1xx: float = 0.2


class TransportError(OSError):
    """Sending through the transaction's connection failed."""


class _Input(enum.Enum):
    NONE = enum.auto()
    REQUEST = enum.auto()
    ACK = enum.auto()
    CANCEL = enum.auto()
    USER_1XX = enum.auto()
    USER_2XX = enum.auto()
    USER_300_PLUS = enum.auto()
    TIMER_G = enum.auto()
    TIMER_H = enum.auto()
    TIMER_I = enum.auto()
    TIMER_J = enum.auto()
    TIMER_L = enum.auto()
    TRANSPORT_ERR = enum.auto()
    DELETE = enum.auto()


def _value(obj: Any, name: str, default: Any = None) -> Any:
    value = getattr(obj, name, default)
    return value() if callable(value) else value


def _method_of(msg: Any) -> str:
    method = _value(msg, "method", "")
    return str(method or "").upper()


class ServerTx:
    """A server transaction (RFC 3261 17.2, with RFC 6026 for 2xx to INVITE).

    Requests carry ``method`` and ``transport``; responses carry
    ``status_code`` and, optionally, ``method`` (the CSeq method).
    ``trying`` builds the automatic ``100 Trying`` response for an INVITE
    from the original request; without it no automatic response is sent.
    """

    def __init__(
        self,
        key: str,
        origin: Any,
        conn: Any,
        *,
        timers: TxTimers | None = None,
        trying: Callable[[Any], Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.key = key
        self.origin = origin
        self.conn = conn
        self.timers = timers or TxTimers()
        self.done = threading.Event()
        self._trying = trying
        self._log = logger or _log
        self._reliable = is_reliable(str(_value(origin, "transport", "")))
        self._invite = _method_of(origin) == "INVITE"

        self._lock = threading.RLock()
        self._fsm_lock = threading.RLock()
        self._state = ""
        self._table: dict[str, dict[_Input, tuple[str, Callable[[ServerTx], _Input]]]] = {}

        self._acks: queue.Queue = queue.Queue()
        self._cancels: queue.Queue = queue.Queue()
        self._last_ack: Any = None
        self._last_cancel: Any = None
        self._last_resp: Any = None
        self._last_err: Exception | None = None
        self._on_terminate: Callable[[str], None] | None = None

        self._timer_g_time = 0.0
        self._timer_g: threading.Timer | None = None
        self._timer_h: threading.Timer | None = None
        self._timer_i: threading.Timer | None = None
        self._timer_j: threading.Timer | None = None
        self._timer_l: threading.Timer | None = None
        self._timer_1xx: threading.Timer | None = None

    # -- public API ---------------------------------------------------------

    def init(self) -> None:
        """Enter the initial state and, for INVITE, arm the 100 Trying timer."""
        with self._fsm_lock:
            if self._invite:
                self._table, self._state = _INVITE_FSM, "proceeding"
            else:
                self._table, self._state = _NON_INVITE_FSM, "trying"

        with self._lock:
            if not self._reliable:
                self._timer_g_time = self.timers.timer_g

        if self._invite and self._trying is not None:
            with self._lock:
                self._timer_1xx = self._start(self.timers.timer_1xx, self._send_trying)
        self._log.debug("Server transaction initialized tx=%s", self.key)

    def receive(self, req: Any) -> None:
        """Feed a retransmitted request, an ACK or a CANCEL into the machine."""
        with self._lock:
            self._stop_1xx()
            method = _method_of(req)
            if method == _method_of(self.origin):
                inp = _Input.REQUEST
            elif method == "ACK":
                self._last_ack = req
                inp = _Input.ACK
            elif method == "CANCEL":
                self._last_cancel = req
                inp = _Input.CANCEL
            else:
                raise ValueError("unexpected message error")
        self._spin(inp)

    def respond(self, res: Any) -> None:
        """Send a response through the transaction.

        A response to CANCEL is written straight to the connection.
        """
        if _method_of(res) == "CANCEL":
            self.conn.write_msg(res)
            return
        with self._lock:
            self._last_resp = res
            self._stop_1xx()
            code = int(_value(res, "status_code", 0))
            if 100 <= code < 200:
                inp = _Input.USER_1XX
            elif 200 <= code < 300:
                inp = _Input.USER_2XX
            else:
                inp = _Input.USER_300_PLUS
        self._spin(inp)

    def acks(self) -> queue.Queue:
        """Queue receiving ACK requests passed up by the transaction."""
        return self._acks

    def cancels(self) -> queue.Queue:
        """Queue receiving CANCEL requests passed up by the transaction."""
        return self._cancels

    def on_terminate(self, callback: Callable[[str], None]) -> None:
        """Call ``callback(key)`` once when the transaction terminates."""
        self._on_terminate = callback

    def terminate(self) -> None:
        """Terminate the transaction and stop its timers."""
        self._log.debug("Server transaction terminating")
        self._delete()

    def err(self) -> Exception | None:
        """The last transport error, if any."""
        with self._lock:
            return self._last_err

    def state(self) -> str:
        """Name of the current state, e.g. ``proceeding`` or ``terminated``."""
        with self._fsm_lock:
            return self._state

    # -- machinery ----------------------------------------------------------

    def _spin(self, inp: _Input) -> None:
        with self._fsm_lock:
            while inp is not _Input.NONE:
                transition = self._table.get(self._state, {}).get(inp)
                if transition is None:
                    return
                self._state, action = transition
                inp = action(self)

    def _start(self, delay: float, func: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, func)
        timer.daemon = True
        timer.start()
        return timer

    def _start_fsm_timer(self, delay: float, inp: _Input) -> threading.Timer:
        return self._start(delay, lambda: self._spin(inp))

    def _stop_1xx(self) -> None:
        if self._timer_1xx is not None:
            self._timer_1xx.cancel()
            self._timer_1xx = None

    def _send_trying(self) -> None:
        try:
            self.respond(self._trying(self.origin))
        except Exception as err:  # noqa: BLE001 - timer thread must not die silently
            self._log.error("send '100 Trying' response failed: %s", err)

    def _pass_resp(self) -> bool:
        with self._lock:
            last = self._last_resp
        if last is None:
            with self._lock:
                self._last_err = TransportError("none response")
            return False
        try:
            self.conn.write_msg(last)
        except (OSError, ValueError) as err:
            self._log.debug("fail to pass response: %s", err)
            wrapped = TransportError(f"transport error: {err}")
            wrapped.__cause__ = err
            with self._lock:
                self._last_err = wrapped
            return False
        return True

    def _pass_ack(self) -> None:
        with self._lock:
            ack = self._last_ack
        if ack is not None and not self.done.is_set():
            self._acks.put(ack)

    def _pass_cancel(self) -> None:
        with self._lock:
            cancel = self._last_cancel
        if cancel is not None and not self.done.is_set():
            self._cancels.put(cancel)

    def _delete(self) -> None:
        with self._lock:
            first = not self.done.is_set()
            self.done.set()
        if first and self._on_terminate is not None:
            self._on_terminate(self.key)

        with self._lock:
            for name in ("_timer_i", "_timer_g", "_timer_h", "_timer_j", "_timer_l", "_timer_1xx"):
                timer = getattr(self, name)
                if timer is not None:
                    timer.cancel()
                    setattr(self, name, None)
        self._log.debug("Server transaction destroyed tx=%s", self.key)

    # -- actions ------------------------------------------------------------

    def _act_respond(self) -> _Input:
        return _Input.NONE if self._pass_resp() else _Input.TRANSPORT_ERR

    def _act_respond_complete(self) -> _Input:
        if not self._pass_resp():
            return _Input.TRANSPORT_ERR
        with self._lock:
            if not self._reliable:
                if self._timer_g is not None:
                    self._timer_g.cancel()
                    self._timer_g_time = min(self._timer_g_time * 2, self.timers.t2)
                self._timer_g = self._start_fsm_timer(self._timer_g_time, _Input.TIMER_G)
            if self._timer_h is None:
                self._timer_h = self._start_fsm_timer(self.timers.timer_h, _Input.TIMER_H)
        return _Input.NONE

    def _act_respond_accept(self) -> _Input:
        if not self._pass_resp():
            return _Input.TRANSPORT_ERR
        with self._lock:
            self._timer_l = self._start_fsm_timer(self.timers.timer_l, _Input.TIMER_L)
        return _Input.NONE

    def _act_passup_ack(self) -> _Input:
        self._pass_ack()
        return _Input.NONE

    def _act_final(self) -> _Input:
        if not self._pass_resp():
            return _Input.TRANSPORT_ERR
        with self._lock:
            self._timer_j = self._start_fsm_timer(self.timers.timer_j, _Input.TIMER_J)
        return _Input.NONE

    def _act_trans_err(self) -> _Input:
        self._log.debug("Transport error. Transaction will terminate: %s", self.err())
        return _Input.DELETE

    def _act_delete(self) -> _Input:
        self._delete()
        return _Input.NONE

    def _act_confirm(self) -> _Input:
        with self._lock:
            for name in ("_timer_g", "_timer_h"):
                timer = getattr(self, name)
                if timer is not None:
                    timer.cancel()
                    setattr(self, name, None)
            self._timer_i = self._start_fsm_timer(self.timers.timer_i, _Input.TIMER_I)
        self._pass_ack()
        return _Input.NONE

    def _act_cancel(self) -> _Input:
        self._pass_cancel()
        return _Input.NONE


_I = _Input
_S = ServerTx

_INVITE_FSM = {
    "proceeding": {
        _I.REQUEST: ("proceeding", _S._act_respond),
        _I.CANCEL: ("proceeding", _S._act_cancel),
        _I.USER_1XX: ("proceeding", _S._act_respond),
        _I.USER_2XX: ("accepted", _S._act_respond_accept),
        _I.USER_300_PLUS: ("completed", _S._act_respond_complete),
        _I.TRANSPORT_ERR: ("terminated", _S._act_trans_err),
    },
    "completed": {
        _I.REQUEST: ("completed", _S._act_respond),
        _I.ACK: ("confirmed", _S._act_confirm),
        _I.TIMER_G: ("completed", _S._act_respond_complete),
        _I.TIMER_H: ("terminated", _S._act_delete),
        _I.TRANSPORT_ERR: ("terminated", _S._act_trans_err),
    },
    "confirmed": {
        _I.TIMER_I: ("terminated", _S._act_delete),
    },
    "accepted": {
        _I.ACK: ("accepted", _S._act_passup_ack),
        _I.USER_2XX: ("accepted", _S._act_respond),
        _I.TIMER_L: ("terminated", _S._act_delete),
    },
    "terminated": {
        _I.DELETE: ("terminated", _S._act_delete),
    },
}

_NON_INVITE_FSM = {
    "trying": {
        _I.USER_1XX: ("proceeding", _S._act_respond),
        _I.USER_2XX: ("completed", _S._act_final),
        _I.USER_300_PLUS: ("completed", _S._act_final),
        _I.TRANSPORT_ERR: ("terminated", _S._act_trans_err),
    },
    "proceeding": {
        _I.REQUEST: ("proceeding", _S._act_respond),
        _I.USER_1XX: ("proceeding", _S._act_respond),
        _I.USER_2XX: ("completed", _S._act_final),
        _I.USER_300_PLUS: ("completed", _S._act_final),
        _I.TRANSPORT_ERR: ("terminated", _S._act_trans_err),
    },
    "completed": {
        _I.REQUEST: ("completed", _S._act_respond),
        _I.TIMER_J: ("terminated", _S._act_delete),
        _I.TRANSPORT_ERR: ("terminated", _S._act_trans_err),
    },
    "terminated": {
        _I.DELETE: ("terminated", _S._act_delete),
    },
}