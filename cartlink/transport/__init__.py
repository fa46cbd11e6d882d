from .base import Transport
from .errors import TransportError, TransportIOError, TransportOpenError
from .ports import PortEnumerator
from .registry import TransportDriverRegistry, TransportFactory
from .uart import UARTTransport

__all__ = [
    "PortEnumerator",
    "Transport",
    "TransportDriverRegistry",
    "TransportError",
    "TransportFactory",
    "TransportIOError",
    "TransportOpenError",
    "UARTTransport",
]
