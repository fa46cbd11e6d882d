# cartlink/transport/ports.py
from __future__ import annotations

import logging
from typing import Optional

from serial.tools import list_ports

from cartlink.core.errors import EnumerationError
from cartlink.model.port import PortDescriptor


class PortEnumerator:
    """
    Lists the serial ports currently visible to the OS.

    Each call returns a fresh list of immutable PortDescriptor snapshots;
    nothing is cached between scans.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger(__name__)

    def list_ports(self) -> list[PortDescriptor]:
        try:
            infos = list_ports.comports()
        except Exception as e:
            self._log.warning("PORT_ENUMERATION_FAILED err=%s", e)
            raise EnumerationError(
                "Could not list serial ports.",
                hint=str(e),
            ) from None

        ports = [PortDescriptor.from_list_port_info(info) for info in infos]
        self._log.debug("PORTS_LISTED count=%d paths=%s", len(ports), [p.path for p in ports])
        return ports
