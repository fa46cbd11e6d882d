from .session import ConnectionSession
from .supervisor import ReconnectionSupervisor, RetryPolicy

__all__ = ["ConnectionSession", "ReconnectionSupervisor", "RetryPolicy"]
