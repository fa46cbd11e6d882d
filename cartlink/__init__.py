"""Host-side device session manager for the serial cartridge reader."""

__version__ = "0.1.0"
