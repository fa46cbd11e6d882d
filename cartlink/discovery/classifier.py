# cartlink/discovery/classifier.py
from __future__ import annotations

from typing import Iterable, Tuple

from cartlink.model.port import PortDescriptor

# USB-serial bridge chips commonly found on reader boards.
DEFAULT_USB_IDS: Tuple[Tuple[str, str], ...] = (
    ("10c4", "ea60"),  # Silicon Labs CP210x
    ("1a86", "7523"),  # QinHeng CH340
    ("0403", "6001"),  # FTDI FT232R
    ("0403", "6010"),  # FTDI FT2232H
    ("067b", "2303"),  # Prolific PL2303
)

DEFAULT_MANUFACTURERS: Tuple[str, ...] = (
    "silicon labs",
    "silabser",
    "cp210x",
    "qinheng",
    "ch340",
    "ftdi",
    "espressif",
    "esp32",
    "arduino",
    "microchip",
    "atmel",
    "nordic",
)


class DeviceClassifier:
    """
    Pure heuristic: does a port descriptor look like a reader?

    A port is a candidate if its (vendor_id, product_id) pair is in the known
    table, or its manufacturer string contains one of the known substrings
    (case-insensitive). No I/O.
    """

    def __init__(
        self,
        usb_ids: Iterable[Tuple[str, str]] = DEFAULT_USB_IDS,
        manufacturers: Iterable[str] = DEFAULT_MANUFACTURERS,
    ):
        self._usb_ids = frozenset((str(v).lower(), str(p).lower()) for v, p in usb_ids)
        self._manufacturers = tuple(str(m).lower() for m in manufacturers if str(m).strip())

    def is_candidate(self, port: PortDescriptor) -> bool:
        vid = (port.vendor_id or "").lower()
        pid = (port.product_id or "").lower()
        if vid and pid and (vid, pid) in self._usb_ids:
            return True

        manufacturer = (port.manufacturer or "").lower()
        if not manufacturer:
            return False
        return any(name in manufacturer for name in self._manufacturers)

    def filter(self, ports: Iterable[PortDescriptor]) -> list[PortDescriptor]:
        """Candidates from `ports`, in the order given."""
        return [p for p in ports if self.is_candidate(p)]
