# cartlink/model/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .cartridge import CartridgeRecord
from .port import PortDescriptor


class ConnectionState(str, Enum):
    """Authoritative state of the managed device slot (owned by the supervisor)."""
    IDLE = "Idle"
    SCANNING = "Scanning"
    VALIDATING = "Validating"
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"
    RECONNECTING = "Reconnecting"


class SessionState(str, Enum):
    """Lifecycle of one ConnectionSession instance. DISCONNECTED is terminal."""
    IDLE = "Idle"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"


@dataclass(frozen=True)
class SupervisorStatus:
    """
    A snapshot of the managed slot, safe to share across threads.
    """
    state: ConnectionState
    port: Optional[str] = None
    record: Optional[CartridgeRecord] = None
    consecutive_failures: int = 0
    retries_exhausted: bool = False
    last_error: Optional[str] = None
    candidates: Tuple[PortDescriptor, ...] = field(default_factory=tuple)

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED
