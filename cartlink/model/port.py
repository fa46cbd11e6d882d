# cartlink/model/port.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


def _hex_id(value: Any) -> Optional[str]:
    """Normalize a USB id (int from pyserial, or str) to 4-digit lowercase hex."""
    if value is None:
        return None
    if isinstance(value, int):
        return f"{value:04x}"
    s = str(value).strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    return s or None


@dataclass(frozen=True)
class PortDescriptor:
    """
    Immutable snapshot of one serial port, taken at scan time.

    Attributes:
        path: OS identifier of the port (e.g. "COM3", "/dev/ttyUSB0").
        manufacturer: USB manufacturer string, if reported.
        vendor_id: USB vendor id as 4-digit lowercase hex ("10c4").
        product_id: USB product id as 4-digit lowercase hex ("ea60").
        serial_number: USB serial number, if reported.
        description: Human-readable description from the OS.
    """
    path: str
    manufacturer: Optional[str] = None
    vendor_id: Optional[str] = None
    product_id: Optional[str] = None
    serial_number: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_list_port_info(cls, info: Any) -> "PortDescriptor":
        """Build from a `serial.tools.list_ports_common.ListPortInfo`."""
        return cls(
            path=str(info.device),
            manufacturer=getattr(info, "manufacturer", None),
            vendor_id=_hex_id(getattr(info, "vid", None)),
            product_id=_hex_id(getattr(info, "pid", None)),
            serial_number=getattr(info, "serial_number", None),
            description=getattr(info, "description", None),
        )

    @property
    def usb_id(self) -> Optional[str]:
        if self.vendor_id and self.product_id:
            return f"{self.vendor_id}:{self.product_id}"
        return None

    def as_dict(self) -> dict:
        return {
            "path": self.path,
            "manufacturer": self.manufacturer,
            "vendorId": self.vendor_id,
            "productId": self.product_id,
            "serialNumber": self.serial_number,
            "description": self.description,
        }
