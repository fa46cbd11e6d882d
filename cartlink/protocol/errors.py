# cartlink/protocol/errors.py

class ProtocolError(Exception):
    """Base for protocol-level failures (framing/parse/schema)."""

class DecodeError(ProtocolError):
    def __init__(self, line: str, reason: str):
        super().__init__(f"cannot decode line ({reason}): {line!r}")
        self.line = line
        self.reason = reason
