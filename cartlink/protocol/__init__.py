from .decoder import DEFAULT_REMOVAL_TOKENS, Decoded, DisconnectSignal, ProtocolDecoder
from .errors import DecodeError, ProtocolError
from .framing import LineFramer

__all__ = [
    "DEFAULT_REMOVAL_TOKENS",
    "DecodeError",
    "Decoded",
    "DisconnectSignal",
    "LineFramer",
    "ProtocolDecoder",
    "ProtocolError",
]
