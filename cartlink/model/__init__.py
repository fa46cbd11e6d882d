from .cartridge import CartridgeRecord
from .port import PortDescriptor
from .state import ConnectionState, SessionState, SupervisorStatus

__all__ = [
    "CartridgeRecord",
    "ConnectionState",
    "PortDescriptor",
    "SessionState",
    "SupervisorStatus",
]
