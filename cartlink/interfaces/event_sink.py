# cartlink/interfaces/event_sink.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Protocol


class EventKind(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECORD_DETECTED = "record_detected"
    RECORD_REMOVED = "record_removed"
    SCAN_ERROR = "scan_error"
    DISPATCH_SUCCEEDED = "dispatch_succeeded"
    DISPATCH_FAILED = "dispatch_failed"
    PERSISTENT_FAILURE = "persistent_failure"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class DeviceEvent:
    """
    Outbound notification for the UI / tray / IPC layer.
    Keep this small + stable; put details into payload.
    """
    kind: EventKind
    payload: Optional[Mapping[str, Any]] = None
    ts_utc: str = field(default_factory=_utc_now)

    def as_dict(self) -> dict:
        return {"kind": self.kind.value, "payload": dict(self.payload or {}), "ts_utc": self.ts_utc}


class EventSink(Protocol):
    def on_event(self, event: DeviceEvent) -> None: ...
    def close(self) -> None: ...
