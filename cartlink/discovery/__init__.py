from .classifier import DEFAULT_MANUFACTURERS, DEFAULT_USB_IDS, DeviceClassifier
from .validator import DEFAULT_COMMAND, DEFAULT_SIGNATURES, HandshakeValidator, ValidationResult

__all__ = [
    "DEFAULT_COMMAND",
    "DEFAULT_MANUFACTURERS",
    "DEFAULT_SIGNATURES",
    "DEFAULT_USB_IDS",
    "DeviceClassifier",
    "HandshakeValidator",
    "ValidationResult",
]
