# cartlink/runtime/session.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional

from cartlink.core.errors import (
    ConnectionTimeoutError,
    DeviceConnectError,
    DeviceDisconnectedError,
    NotConnectedError,
)
from cartlink.model.state import SessionState
from cartlink.protocol.framing import LineFramer
from cartlink.runtime.workers import RxWorker
from cartlink.transport.base import Transport
from cartlink.transport.errors import TransportError, TransportIOError

LineCallback = Callable[["ConnectionSession", str], None]
StateCallback = Callable[["ConnectionSession", SessionState, Optional[str]], None]


class ConnectionSession:
    """
    One open port bound to a line framer and an RX thread.

    State machine:
        IDLE -(open)-> CONNECTING -(opened)-> CONNECTED -(error/close)-> DISCONNECTED

    DISCONNECTED is terminal; reconnecting means constructing a new session.
    The port is closed and the framing buffer discarded on every path into
    DISCONNECTED.
    """

    def __init__(
        self,
        path: str,
        transport: Transport,
        *,
        connect_timeout_s: float = 5.0,
        read_size: int = 256,
        on_line: Optional[LineCallback] = None,
        on_state: Optional[StateCallback] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.path = path
        self._transport = transport
        self.connect_timeout_s = float(connect_timeout_s)
        self._read_size = int(read_size)
        self.on_line = on_line
        self.on_state = on_state
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._state = SessionState.IDLE
        self._framer = LineFramer(logger=self._log)
        self._rx: Optional[RxWorker] = None
        self._last_error: Optional[str] = None

    # ---------------- state ----------------
    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            return self._last_error

    # ---------------- lifecycle ----------------
    def open(self, *, start_reader: bool = True) -> None:
        """
        Open the port within the connect timeout. With start_reader=False the
        caller starts the RX thread later via start_reader(); bytes wait in the
        OS buffer meanwhile.
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                raise DeviceConnectError(
                    "Session already used.",
                    hint="A disconnected session cannot be reopened; create a new one.",
                    details={"port": self.path, "state": self._state.value},
                )
            self._state = SessionState.CONNECTING
        self._notify_state(SessionState.CONNECTING, None)
        self._log.info("SESSION_OPEN port=%s timeout_s=%.1f", self.path, self.connect_timeout_s)

        opened: Future = Future()
        opener = threading.Thread(
            target=self._open_transport,
            args=(opened,),
            name=f"cartlink-open-{self.path}",
            daemon=True,
        )
        opener.start()

        try:
            opened.result(timeout=self.connect_timeout_s)
        except FutureTimeout:
            with self._lock:
                # a late successful open will see the cancelled future and close the port
                opened.cancel()
            self._finish(f"connect timeout after {self.connect_timeout_s}s", notify=True)
            raise ConnectionTimeoutError(
                "Timed out opening device port.",
                hint="The port may be held by another program.",
                details={"port": self.path, "timeout_s": self.connect_timeout_s},
            ) from None
        except TransportError as e:
            self._finish(str(e), notify=True)
            raise DeviceConnectError(
                "Could not open device port.",
                hint=str(e),
                details={"port": self.path},
            ) from None
        except Exception as e:
            self._log.exception("SESSION_OPEN_ERROR port=%s", self.path)
            self._finish(str(e), notify=True)
            raise DeviceConnectError(
                "Unexpected error while opening device port.",
                hint=str(e),
                details={"port": self.path},
            ) from None

        with self._lock:
            if self._state is not SessionState.CONNECTING:
                # close() raced with open(); the port has already been released
                raise DeviceConnectError("Session closed while opening.", details={"port": self.path})
            self._state = SessionState.CONNECTED

        self._log.info("SESSION_CONNECTED port=%s", self.path)
        self._notify_state(SessionState.CONNECTED, None)
        if start_reader:
            self.start_reader()

    def start_reader(self) -> None:
        with self._lock:
            if self._state is not SessionState.CONNECTED or self._rx is not None:
                return
            self._rx = RxWorker(self._pump_rx, name=f"cartlink-rx-{self.path}", logger=self._log)
            self._rx.start()

    def close(self) -> None:
        """Stop reading, close the port, drop the buffer. Idempotent."""
        self._finish(None, notify=True)

    def send(self, command: str) -> None:
        if not self.is_connected:
            raise NotConnectedError(
                "No open device session.",
                details={"port": self.path, "state": self.state.value},
            )
        data = (command + "\n").encode("utf-8")
        try:
            with self._write_lock:
                self._transport.write(data)
                self._transport.flush()
        except TransportError as e:
            self._log.warning("SESSION_WRITE_FAILED port=%s err=%s", self.path, e)
            self._finish(str(e), notify=True)
            raise DeviceDisconnectedError(
                "Device stopped responding while sending a command.",
                hint=str(e),
                details={"port": self.path},
            ) from None
        self._log.debug("SESSION_TX port=%s command=%r", self.path, command)

    # ---------------- internals ----------------
    def _open_transport(self, opened: Future) -> None:
        try:
            self._transport.open()
        except Exception as e:
            with self._lock:
                if not opened.cancelled():
                    opened.set_exception(e)
            return

        with self._lock:
            late = opened.cancelled() or self._state is not SessionState.CONNECTING
            if not opened.cancelled():
                opened.set_result(None)
        if late:
            self._log.info("SESSION_LATE_OPEN_DISCARDED port=%s", self.path)
            self._close_transport()

    def _pump_rx(self) -> bool:
        """One read + framing pass. Returns False once the session is over."""
        if not self.is_connected:
            return False
        try:
            data = self._transport.read(self._read_size)
        except TransportIOError as e:
            if self.is_connected:
                self._log.warning("SESSION_READ_FAILED port=%s err=%s", self.path, e)
                self._finish(str(e), notify=True)
            return False

        if not data:
            return True

        with self._lock:
            if self._state is not SessionState.CONNECTED:
                return False
            lines = self._framer.feed(data)

        cb = self.on_line
        for line in lines:
            self._log.debug("SESSION_RX port=%s line=%r", self.path, line)
            if cb is None:
                continue
            try:
                cb(self, line)
            except Exception:
                self._log.exception("LINE_CALLBACK_ERROR port=%s", self.path)
        return True

    def _finish(self, error: Optional[str], *, notify: bool) -> None:
        with self._lock:
            if self._state is SessionState.DISCONNECTED:
                return
            was_idle = self._state is SessionState.IDLE
            self._state = SessionState.DISCONNECTED
            if error:
                self._last_error = error
            rx, self._rx = self._rx, None
            self._framer.reset()

        if rx is not None:
            rx.stop()
            if rx is not threading.current_thread():
                rx.join(timeout=1.0)

        self._close_transport()
        if error:
            self._log.warning("SESSION_DISCONNECTED port=%s err=%s", self.path, error)
        else:
            self._log.info("SESSION_CLOSED port=%s", self.path)

        if notify and not was_idle:
            self._notify_state(SessionState.DISCONNECTED, error)

    def _close_transport(self) -> None:
        try:
            self._transport.close()
        except Exception:
            self._log.exception("SESSION_CLOSE_FAILED port=%s", self.path)

    def _notify_state(self, state: SessionState, error: Optional[str]) -> None:
        cb = self.on_state
        if cb is None:
            return
        try:
            cb(self, state, error)
        except Exception:
            self._log.exception("STATE_CALLBACK_ERROR port=%s state=%s", self.path, state.value)

    def __enter__(self) -> "ConnectionSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ConnectionSession(path='{self.path}', state={self.state.value})"
