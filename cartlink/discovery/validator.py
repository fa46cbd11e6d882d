# cartlink/discovery/validator.py
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from cartlink.model.port import PortDescriptor
from cartlink.transport.base import Transport
from cartlink.transport.errors import TransportError

DEFAULT_COMMAND = "IDENTIFY"

# Accepted identification replies across reader firmware revisions.
DEFAULT_SIGNATURES: tuple[str, ...] = (
    "RETRO-LAUNCHER-NFC-DEVICE",
    "RETRO_LAUNCHER",
    "Retro Launcher",
    "NFC Reader",
    "ESP32 NFC",
    "MFRC522",
    "Ready to read NFC cards",
)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    port: PortDescriptor


class HandshakeValidator:
    """
    Confirms a candidate port is a reader via an identification handshake.

    validate(path):
      1. open the port (fixed transport config, explicit open)
      2. write `command + "\\n"`
      3. read until any configured signature appears in the reply -> True
      4. timeout, open error or I/O error -> False

    The port is closed before validate() returns, whatever the outcome.
    Data that arrives after the deadline never turns the result into True.
    Only one validation per path may be in flight; a concurrent request for
    the same path returns False immediately.
    """

    def __init__(
        self,
        transport_factory: Callable[[str], Transport],
        *,
        command: str = DEFAULT_COMMAND,
        signatures: Iterable[str] = DEFAULT_SIGNATURES,
        timeout_s: float = 2.0,
        read_size: int = 64,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self._transport_factory = transport_factory
        self.command = str(command)
        self.signatures = tuple(s for s in signatures if s)
        self.timeout_s = float(timeout_s)
        self._read_size = int(read_size)
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def matches(self, text: str) -> bool:
        return any(sig in text for sig in self.signatures)

    def validate(self, path: str) -> bool:
        with self._lock:
            if path in self._in_flight:
                self._log.warning("VALIDATION_BUSY port=%s", path)
                return False
            self._in_flight.add(path)

        try:
            return self._handshake(path)
        finally:
            with self._lock:
                self._in_flight.discard(path)

    def validate_many(self, ports: Sequence[PortDescriptor]) -> list[ValidationResult]:
        """
        Validate distinct ports concurrently; results keep the input order.
        """
        unique: dict[str, PortDescriptor] = {}
        for p in ports:
            unique.setdefault(p.path, p)
        if not unique:
            return []

        with ThreadPoolExecutor(max_workers=len(unique), thread_name_prefix="cartlink-validate") as pool:
            futures = {path: pool.submit(self.validate, path) for path in unique}

        results: list[ValidationResult] = []
        for path, port in unique.items():
            try:
                ok = bool(futures[path].result())
            except Exception:
                self._log.exception("VALIDATION_CRASHED port=%s", path)
                ok = False
            results.append(ValidationResult(ok=ok, port=port))
        return results

    # ---------------- internals ----------------
    def _handshake(self, path: str) -> bool:
        transport = self._transport_factory(path)
        try:
            try:
                transport.open()
            except TransportError as e:
                self._log.info("VALIDATION_OPEN_FAILED port=%s err=%s", path, e)
                return False

            deadline = self._clock() + self.timeout_s

            try:
                transport.write((self.command + "\n").encode("ascii"))
                transport.flush()
            except TransportError as e:
                self._log.info("VALIDATION_WRITE_FAILED port=%s err=%s", path, e)
                return False

            received = ""
            while True:
                if self._clock() >= deadline:
                    self._log.info("VALIDATION_TIMEOUT port=%s timeout_s=%.2f", path, self.timeout_s)
                    return False

                try:
                    chunk = transport.read(self._read_size)
                except TransportError as e:
                    self._log.info("VALIDATION_READ_FAILED port=%s err=%s", path, e)
                    return False

                if not chunk:
                    continue

                if self._clock() > deadline:
                    # the timeout already fired; a late reply cannot resurrect the port
                    self._log.info("VALIDATION_LATE_REPLY port=%s", path)
                    return False

                received += chunk.decode("utf-8", errors="replace")
                self._log.debug("VALIDATION_RX port=%s data=%r", path, chunk)
                if self.matches(received):
                    self._log.info("VALIDATION_OK port=%s", path)
                    return True
        finally:
            try:
                transport.close()
            except Exception:
                self._log.exception("VALIDATION_CLOSE_FAILED port=%s", path)
