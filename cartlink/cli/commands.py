# cartlink/cli/commands.py
from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Optional, Sequence

from cartlink.app.config import CartLinkConfig, load_config
from cartlink.app.controller import CartLinkController
from cartlink.core.errors import CartLinkError, ConfigError, EnumerationError
from cartlink.discovery.classifier import DeviceClassifier
from cartlink.discovery.validator import HandshakeValidator
from cartlink.dispatch.launcher import ProcessLauncher
from cartlink.interfaces import DeviceEvent, EventKind, EventSink
from cartlink.runtime.supervisor import PortLister
from cartlink.transport.ports import PortEnumerator
from cartlink.transport.registry import TransportDriverRegistry


# ---------------- Event sink ----------------

class PrintEventSink(EventSink):
    """Print supervisor events to stdout, one line each."""
    def __init__(self, *, as_json: bool = False):
        self._as_json = as_json

    def on_event(self, event: DeviceEvent) -> None:
        if self._as_json:
            print(json.dumps(event.as_dict()), flush=True)
            return
        payload = dict(event.payload or {})
        fields = " ".join(f"{k}={v!r}" for k, v in payload.items())
        print(f"EVENT {event.kind.value} {fields}".rstrip(), flush=True)

    def close(self) -> None:
        return None


# ---------------- Logging ----------------

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(*, verbosity: int = 0, log_file: Optional[str] = None) -> None:
    """
    Console handler on the root logger, plus an optional file handler (idempotent).
    Kept in CLI (presentation-layer concern).
    """
    root = logging.getLogger()
    level = logging.WARNING if verbosity <= 0 else logging.INFO if verbosity == 1 else logging.DEBUG

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(ch)
    for h in root.handlers:
        if type(h) is logging.StreamHandler:
            h.setLevel(level)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        target = str(path.resolve())
        if not any(
            isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target
            for h in root.handlers
        ):
            fh = logging.FileHandler(path, encoding="utf-8", delay=True)
            fh.setLevel(logging.INFO if verbosity < 2 else logging.DEBUG)
            fh.setFormatter(logging.Formatter(_LOG_FORMAT))
            root.addHandler(fh)
        level = min(level, logging.INFO)

    if root.level == logging.NOTSET or root.level > level:
        root.setLevel(level)


def load_cli_config(path: Optional[str]) -> CartLinkConfig:
    return load_config(path) if path else CartLinkConfig()


# ---------------- Commands ----------------

def cmd_ports(config: CartLinkConfig, *, show_all: bool = False) -> int:
    classifier = DeviceClassifier(
        usb_ids=config.discovery.usb_ids,
        manufacturers=config.discovery.manufacturers,
    )
    try:
        ports = PortEnumerator().list_ports()
    except EnumerationError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1

    shown = 0
    for p in ports:
        candidate = classifier.is_candidate(p)
        if not candidate and not show_all:
            continue
        shown += 1
        mark = "*" if candidate else " "
        usb = p.usb_id or "-"
        print(f"{mark} {p.path:<16} usb={usb:<10} manufacturer={p.manufacturer or '-'} desc={p.description or '-'}")

    if shown == 0:
        print("No candidate ports found." if not show_all else "No serial ports found.")
    return 0


def cmd_probe(config: CartLinkConfig, *, port: str) -> int:
    drivers = TransportDriverRegistry.default()
    if not drivers.has(config.transport.driver):
        raise ConfigError(
            f"Unknown transport driver '{config.transport.driver}'.",
            hint=f"Known drivers: {', '.join(drivers.drivers())}",
        )
    factory = drivers.factory(
        config.transport.driver,
        baudrate=config.transport.baudrate,
        timeout=config.transport.read_timeout_s,
    )
    validator = HandshakeValidator(
        factory,
        command=config.handshake.command,
        signatures=config.handshake.signatures,
        timeout_s=config.handshake.timeout_s,
    )

    t0 = time.monotonic()
    ok = validator.validate(port)
    elapsed_ms = (time.monotonic() - t0) * 1000.0
    print(f"{port}: {'reader found' if ok else 'no reader'} ({elapsed_ms:.0f} ms)")
    return 0 if ok else 1


def cmd_watch(
    config: CartLinkConfig,
    *,
    launch: bool = True,
    secs: Optional[float] = None,
    send: Sequence[str] = (),
    drivers: Optional[TransportDriverRegistry] = None,
    enumerator: Optional[PortLister] = None,
) -> int:
    controller = CartLinkController(
        config,
        dispatcher=ProcessLauncher() if launch else None,
        drivers=drivers,
        enumerator=enumerator,
    )
    controller.add_sink(PrintEventSink())

    connected = threading.Event()
    pending_sends = list(send)

    class _ConnectedFlag(EventSink):
        def on_event(self, event: DeviceEvent) -> None:
            if event.kind is EventKind.CONNECTED:
                connected.set()
            elif event.kind is EventKind.DISCONNECTED:
                connected.clear()

        def close(self) -> None:
            return None

    controller.add_sink(_ConnectedFlag())

    deadline = (time.monotonic() + secs) if secs is not None else None
    print("Watching for the cartridge reader (Ctrl+C to stop)...")
    with controller:
        try:
            while deadline is None or time.monotonic() < deadline:
                if pending_sends and connected.is_set():
                    cmd = pending_sends.pop(0)
                    try:
                        controller.send_raw_command(cmd)
                        print(f"SENT {cmd!r}")
                    except CartLinkError as e:
                        print(f"SEND FAILED {cmd!r}: {e.message}")
                time.sleep(0.1)
        except KeyboardInterrupt:
            pass

        st = controller.status()
        print(f"Final state: {st.state.value} port={st.port or '-'} failures={st.consecutive_failures}")
    return 0
