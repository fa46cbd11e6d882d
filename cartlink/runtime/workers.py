# cartlink/runtime/workers.py
from __future__ import annotations

import logging
import threading
from typing import Callable


class RxWorker(threading.Thread):
    """Thread that keeps calling `pump` (one transport read + framing) until stopped or it returns False."""

    def __init__(self, pump: Callable[[], bool], *, name: str, logger: logging.Logger):
        super().__init__(name=name, daemon=True)
        self._pump = pump
        self._log = logger
        self._stop_event = threading.Event()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                keep_going = self._pump()
            except Exception:
                self._log.exception("RX_WORKER_EXCEPTION thread=%s", self.name)
                self._stop_event.wait(0.01)
                continue
            if not keep_going:
                break

    def stop(self) -> None:
        self._stop_event.set()


class ScanWorker(threading.Thread):
    """
    Thread that drives a state machine: `step()` returns the delay until the
    next step; `wake()` cuts the current wait short.
    """

    def __init__(self, step: Callable[[], float], *, name: str, logger: logging.Logger, fallback_delay_s: float = 1.0):
        super().__init__(name=name, daemon=True)
        self._step = step
        self._log = logger
        self._fallback_delay_s = fallback_delay_s
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                delay = self._step()
            except Exception:
                self._log.exception("SCAN_WORKER_EXCEPTION")
                delay = self._fallback_delay_s
            if self._stop_event.is_set():
                break
            self._wake_event.wait(max(0.0, delay))
            self._wake_event.clear()

    def wake(self) -> None:
        self._wake_event.set()

    def stop(self) -> None:
        self._stop_event.set()
        self._wake_event.set()
