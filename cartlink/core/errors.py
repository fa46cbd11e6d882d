# cartlink/core/errors.py
from __future__ import annotations


class CartLinkError(Exception):
    """
    Base class for all expected operational errors in cartlink.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, UI status, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration errors (no hardware access yet)
# ---------------------------------------------------------------------------

class ConfigError(CartLinkError):
    """
    Configuration is invalid or cannot be loaded.

    Examples:
      - unknown transport driver key
      - malformed YAML / wrong value types
      - config file not found
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Discovery errors
# ---------------------------------------------------------------------------

class EnumerationError(CartLinkError):
    """
    The OS failed to list serial ports.

    Never fatal: the supervisor treats it as "no ports this cycle".
    """
    code = "enumeration_error"


# ---------------------------------------------------------------------------
# Connection lifecycle errors
# ---------------------------------------------------------------------------

class DeviceConnectError(CartLinkError):
    """
    Port could not be opened for a session.

    Examples:
      - port vanished between scan and open
      - permission denied
      - port already in use by another process
    """
    code = "device_connect_error"


class ConnectionTimeoutError(DeviceConnectError):
    """Port open did not complete within the connect timeout."""
    code = "connection_timeout"


class DeviceDisconnectedError(CartLinkError):
    """
    Device was connected but is no longer reachable.

    Examples:
      - USB cable unplugged
      - OS-level I/O error during write
    """
    code = "device_disconnected"


class NotConnectedError(CartLinkError):
    """A command needs a connected session but none is open."""
    code = "not_connected"


# ---------------------------------------------------------------------------
# Dispatch errors
# ---------------------------------------------------------------------------

class DispatchError(CartLinkError):
    """
    Launching a cartridge's executable failed.

    Reported to collaborators as an event; never affects connection state.
    """
    code = "dispatch_error"
