# cartlink/runtime/supervisor.py
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from cartlink.core.errors import CartLinkError, DispatchError, EnumerationError, NotConnectedError
from cartlink.discovery.classifier import DeviceClassifier
from cartlink.discovery.validator import ValidationResult
from cartlink.interfaces.dispatcher import ActionDispatcher, DispatchResult
from cartlink.interfaces.event_sink import DeviceEvent, EventKind
from cartlink.model.cartridge import CartridgeRecord
from cartlink.model.port import PortDescriptor
from cartlink.model.state import ConnectionState, SessionState, SupervisorStatus
from cartlink.protocol.decoder import DisconnectSignal, ProtocolDecoder
from cartlink.runtime.session import ConnectionSession, LineCallback, StateCallback
from cartlink.runtime.workers import ScanWorker

EventCallback = Callable[[DeviceEvent], None]
SessionFactory = Callable[[str, LineCallback, StateCallback], ConnectionSession]


class PortLister(Protocol):
    """What the supervisor needs from the port enumerator."""
    def list_ports(self) -> List[PortDescriptor]: ...


class PortValidator(Protocol):
    """What the supervisor needs from the handshake validator."""
    def validate_many(self, ports: Sequence[PortDescriptor]) -> List[ValidationResult]: ...


@dataclass(frozen=True)
class RetryPolicy:
    scan_interval_s: float = 2.0
    reconnect_interval_s: float = 3.0
    max_retries: int = 3


class ReconnectionSupervisor:
    """
    Sole owner of the managed device slot.

    State machine:
        IDLE -> SCANNING -> VALIDATING -> CONNECTED -> DISCONNECTED
             -> RECONNECTING -(interval)-> SCANNING ...

    - While CONNECTED no scanning happens, so no competing session can open.
    - After a disconnect one attempt is made per reconnect interval. After
      `max_retries` consecutive failures a PERSISTENT_FAILURE event is emitted
      (once) and the supervisor falls back to plain scanning at the normal
      interval, so a newly plugged reader is still found.
    - reconnect() drops the current session, resets the failure budget and
      rescans. Only the scan worker creates sessions.

    step() performs one state-machine step and returns the delay before the
    next one; start_scanning() runs it on a ScanWorker thread.
    """

    def __init__(
        self,
        *,
        enumerator: PortLister,
        classifier: DeviceClassifier,
        validator: PortValidator,
        session_factory: SessionFactory,
        decoder: Optional[ProtocolDecoder] = None,
        dispatcher: Optional[ActionDispatcher] = None,
        policy: RetryPolicy = RetryPolicy(),
        auto_launch: bool = True,
        disconnect_on_removal: bool = False,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self._enumerator = enumerator
        self._classifier = classifier
        self._validator = validator
        self._session_factory = session_factory
        self._decoder = decoder or ProtocolDecoder()
        self._dispatcher = dispatcher
        self.policy = policy
        self.auto_launch = auto_launch
        self.disconnect_on_removal = disconnect_on_removal
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._state = ConnectionState.IDLE
        self._session: Optional[ConnectionSession] = None
        self._record: Optional[CartridgeRecord] = None
        self._candidates: tuple[PortDescriptor, ...] = ()
        self._failures = 0
        self._exhausted = False
        self._last_error: Optional[str] = None
        self._next_attempt_at = 0.0
        # bumped by reconnect()/stop_scanning() so an in-flight scan can tell it was superseded
        self._generation = 0

        self._worker: Optional[ScanWorker] = None
        self._subscribers: List[EventCallback] = []

    # ---------------- read-only views ----------------
    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def current_record(self) -> Optional[CartridgeRecord]:
        with self._lock:
            return self._record

    @property
    def candidates(self) -> tuple[PortDescriptor, ...]:
        """Candidate ports seen by the last scan (passive list, never promoted by itself)."""
        with self._lock:
            return self._candidates

    @property
    def is_scanning(self) -> bool:
        worker = self._worker
        return worker is not None and worker.is_alive()

    def status(self) -> SupervisorStatus:
        with self._lock:
            return SupervisorStatus(
                state=self._state,
                port=self._session.path if self._session is not None else None,
                record=self._record,
                consecutive_failures=self._failures,
                retries_exhausted=self._exhausted,
                last_error=self._last_error,
                candidates=self._candidates,
            )

    # ---------------- observers ----------------
    def subscribe(self, cb: EventCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(cb)

        def _unsubscribe() -> None:
            with self._lock:
                if cb in self._subscribers:
                    self._subscribers.remove(cb)

        return _unsubscribe

    # ---------------- inbound commands ----------------
    def start_scanning(self) -> None:
        with self._lock:
            if self.is_scanning:
                return
            if self._state is ConnectionState.IDLE:
                self._set_state(ConnectionState.SCANNING)
            self._worker = ScanWorker(
                self.step,
                name="cartlink-supervisor",
                logger=self._log,
                fallback_delay_s=self.policy.scan_interval_s,
            )
            self._worker.start()
        self._log.info("SCANNING_STARTED")

    def stop_scanning(self) -> None:
        with self._lock:
            worker, self._worker = self._worker, None
            self._generation += 1
        if worker is not None:
            worker.stop()
            if worker is not threading.current_thread():
                worker.join(timeout=5.0)

        dropped = self._drop_session()
        with self._lock:
            self._record = None
            self._set_state(ConnectionState.IDLE)
        if dropped is not None:
            self._emit(EventKind.DISCONNECTED, {"port": dropped.path, "error": None})
        self._log.info("SCANNING_STOPPED")

    def reconnect(self) -> None:
        """Collapse the current session and rescan now, with a fresh retry budget."""
        self._log.info("RECONNECT_REQUESTED")
        with self._lock:
            self._generation += 1
        dropped = self._drop_session()
        with self._lock:
            self._record = None
            self._failures = 0
            self._exhausted = False
            self._last_error = None
            self._set_state(ConnectionState.SCANNING)
            worker = self._worker
        if dropped is not None:
            self._emit(EventKind.DISCONNECTED, {"port": dropped.path, "error": None})
        if worker is not None:
            worker.wake()

    def send_raw_command(self, command: str) -> None:
        with self._lock:
            session = self._session
        if session is None:
            raise NotConnectedError(
                "No reader connected.",
                hint="Wait for the 'connected' event or call reconnect().",
            )
        session.send(command)

    # ---------------- state machine ----------------
    def step(self) -> float:
        with self._lock:
            state = self._state
            # a stop_scanning()/reconnect() after this point makes the cycle stale
            generation = self._generation
            now = self._clock()

            if state is ConnectionState.CONNECTED:
                return self.policy.scan_interval_s

            if state is ConnectionState.DISCONNECTED:
                self._next_attempt_at = now + self.policy.reconnect_interval_s
                self._set_state(ConnectionState.RECONNECTING)
                self._log.info(
                    "RECONNECT_SCHEDULED in_s=%.1f attempt=%d/%d",
                    self.policy.reconnect_interval_s,
                    self._failures + 1,
                    self.policy.max_retries,
                )
                return self.policy.reconnect_interval_s

            if state is ConnectionState.RECONNECTING:
                remaining = self._next_attempt_at - now
                if remaining > 0:
                    return remaining
                counted = True
            else:
                counted = False
                if state is ConnectionState.IDLE and generation == self._generation:
                    self._set_state(ConnectionState.SCANNING)

        self._attempt(generation, counted=counted)

        with self._lock:
            if self._state is ConnectionState.DISCONNECTED:
                return 0.0
        return self.policy.scan_interval_s

    def _attempt(self, generation: int, *, counted: bool) -> None:
        """
        One scan cycle. `counted` marks a reconnection attempt: finding nothing
        then uses up one unit of the retry budget.
        """
        with self._lock:
            if generation != self._generation or self._state is ConnectionState.IDLE:
                return
            self._set_state(ConnectionState.SCANNING)

        try:
            ports = self._enumerator.list_ports()
        except EnumerationError as e:
            self._log.warning("SCAN_ERROR err=%s", e.message)
            self._emit(EventKind.SCAN_ERROR, {"error": e.message, "hint": e.hint})
            self._after_failed_attempt(generation, counted, e.message)
            return

        candidates = self._classifier.filter(ports)
        with self._lock:
            self._candidates = tuple(candidates)
        self._log.debug("SCAN ports=%d candidates=%d", len(ports), len(candidates))

        if not candidates:
            self._after_failed_attempt(generation, counted, "no candidate device found")
            return

        with self._lock:
            if generation != self._generation:
                return
            self._set_state(ConnectionState.VALIDATING)

        results = self._validator.validate_many(candidates)
        validated = [r.port for r in results if r.ok]
        if not validated:
            self._after_failed_attempt(generation, counted, "no candidate answered the handshake")
            return

        open_error: Optional[str] = None
        for port in validated:
            with self._lock:
                if generation != self._generation:
                    return
            session = self._session_factory(port.path, self._on_session_line, self._on_session_state)
            try:
                session.open(start_reader=False)
            except CartLinkError as e:
                open_error = f"{port.path}: {e.message}"
                self._log.warning("SESSION_OPEN_FAILED port=%s err=%s", port.path, e.message)
                continue

            if self._promote(session, generation):
                return
            with self._lock:
                if generation != self._generation:
                    return
            open_error = f"{port.path}: session lost before promotion"

        # a validated reader that cannot be opened always counts against the budget
        self._after_failed_attempt(generation, True, open_error or "session open failed")

    def _promote(self, session: ConnectionSession, generation: int) -> bool:
        with self._lock:
            stale = generation != self._generation or self._session is not None
            alive = session.state is SessionState.CONNECTED
            if not stale and alive:
                self._session = session
                self._failures = 0
                self._exhausted = False
                self._last_error = None
                self._set_state(ConnectionState.CONNECTED)

        if stale or not alive:
            self._log.info("SESSION_DISCARDED port=%s stale=%s alive=%s", session.path, stale, alive)
            session.close()
            return False

        self._log.info("DEVICE_CONNECTED port=%s", session.path)
        with self._lock:
            current = generation == self._generation and self._session is session
        if not current:
            # reconnect()/stop_scanning() already dropped it and reported the disconnect
            self._log.info("SESSION_SUPERSEDED port=%s", session.path)
            return False
        self._emit(EventKind.CONNECTED, {"port": session.path})
        # reading starts only once the session owns the slot, so no line is dropped
        session.start_reader()
        return True

    def _after_failed_attempt(self, generation: int, counted: bool, reason: str) -> None:
        persistent: Optional[dict] = None
        with self._lock:
            if generation != self._generation:
                return
            self._last_error = reason

            if not counted or self._exhausted:
                self._set_state(ConnectionState.SCANNING)
                return

            self._failures += 1
            self._log.info(
                "CONNECT_ATTEMPT_FAILED attempt=%d/%d reason=%s",
                self._failures,
                self.policy.max_retries,
                reason,
            )
            if self._failures >= self.policy.max_retries:
                self._exhausted = True
                self._set_state(ConnectionState.SCANNING)
                persistent = {"attempts": self._failures, "last_error": reason}
            else:
                self._set_state(ConnectionState.DISCONNECTED)

        if persistent is not None:
            self._log.warning("RETRIES_EXHAUSTED attempts=%d last_error=%s", persistent["attempts"], reason)
            self._emit(EventKind.PERSISTENT_FAILURE, persistent)

    # ---------------- session callbacks (RX / opener threads) ----------------
    def _on_session_state(self, session: ConnectionSession, state: SessionState, error: Optional[str]) -> None:
        if state is not SessionState.DISCONNECTED:
            return
        with self._lock:
            if session is not self._session:
                return
            self._session = None
            self._record = None
            if error:
                self._last_error = error
            self._set_state(ConnectionState.DISCONNECTED)
            worker = self._worker

        self._log.warning("DEVICE_DISCONNECTED port=%s err=%s", session.path, error)
        self._emit(EventKind.DISCONNECTED, {"port": session.path, "error": error})
        if worker is not None:
            worker.wake()

    def _on_session_line(self, session: ConnectionSession, line: str) -> None:
        with self._lock:
            if session is not self._session:
                return

        decoded = self._decoder.decode(line)
        if decoded is None:
            return

        if isinstance(decoded, DisconnectSignal):
            self._on_removal(session)
            return

        with self._lock:
            if session is not self._session:
                return
            self._record = decoded
        self._emit(EventKind.RECORD_DETECTED, decoded.as_dict())

        if self.auto_launch and self._dispatcher is not None and decoded.launchable:
            self._dispatch(self._dispatcher, decoded.path_name)

    def _on_removal(self, session: ConnectionSession) -> None:
        with self._lock:
            self._record = None
        self._emit(EventKind.RECORD_REMOVED, {"port": session.path})
        if self.disconnect_on_removal:
            # closing reports DISCONNECTED back through _on_session_state
            session.close()

    # ---------------- dispatch ----------------
    def _dispatch(self, dispatcher: ActionDispatcher, path: str) -> None:
        try:
            fut = dispatcher.launch(path)
        except DispatchError as e:
            self._emit(EventKind.DISPATCH_FAILED, {"path": path, "error": e.message})
            return
        except Exception as e:
            self._log.exception("DISPATCH_ERROR path=%s", path)
            self._emit(EventKind.DISPATCH_FAILED, {"path": path, "error": str(e)})
            return

        def _on_done(f: "Future[DispatchResult]") -> None:
            try:
                result = f.result()
            except Exception as e:
                self._emit(EventKind.DISPATCH_FAILED, {"path": path, "error": str(e)})
                return
            if result.ok:
                self._emit(EventKind.DISPATCH_SUCCEEDED, {"path": result.path})
            else:
                self._emit(EventKind.DISPATCH_FAILED, {"path": result.path, "error": result.error})

        fut.add_done_callback(_on_done)

    # ---------------- helpers ----------------
    def _drop_session(self) -> Optional[ConnectionSession]:
        with self._lock:
            session, self._session = self._session, None
        if session is not None:
            session.close()
        return session

    def _set_state(self, new: ConnectionState) -> None:
        # caller holds self._lock
        old = self._state
        if old is new:
            return
        self._state = new
        self._log.debug("STATE %s -> %s", old.value, new.value)

    def _emit(self, kind: EventKind, payload: Optional[dict] = None) -> None:
        event = DeviceEvent(kind=kind, payload=payload)
        with self._lock:
            subscribers = list(self._subscribers)
        for cb in subscribers:
            try:
                cb(event)
            except Exception:
                self._log.exception("EVENT_CALLBACK_ERROR kind=%s", kind.value)
