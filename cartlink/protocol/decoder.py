# cartlink/protocol/decoder.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from cartlink.model.cartridge import CartridgeRecord

from .errors import DecodeError

DEFAULT_REMOVAL_TOKENS: tuple[str, ...] = ("TAG_REMOVED",)


@dataclass(frozen=True)
class DisconnectSignal:
    """Reserved protocol line: the cartridge was taken off the reader."""
    token: str


Decoded = Union[CartridgeRecord, DisconnectSignal]


class ProtocolDecoder:
    """
    Classifies one framed line from the reader.

    - a reserved removal token          -> DisconnectSignal (checked before JSON)
    - a JSON object matching the schema -> CartridgeRecord
    - anything else                     -> None (diagnostic text or bad record)
    """

    def __init__(
        self,
        removal_tokens: Iterable[str] = DEFAULT_REMOVAL_TOKENS,
        logger: Optional[logging.Logger] = None,
    ):
        self.removal_tokens = frozenset(t.strip() for t in removal_tokens if t.strip())
        self._log = logger or logging.getLogger(__name__)

    def parse(self, line: str) -> Decoded:
        """Strict variant of decode(): raises DecodeError instead of returning None."""
        text = line.strip()
        if not text:
            raise DecodeError(line, "empty line")

        if text in self.removal_tokens:
            return DisconnectSignal(token=text)

        try:
            data = json.loads(text)
        except ValueError:
            raise DecodeError(line, "not JSON") from None

        try:
            return CartridgeRecord.from_mapping(data)
        except ValueError as e:
            raise DecodeError(line, f"schema: {e}") from None

    def decode(self, line: str) -> Optional[Decoded]:
        try:
            result = self.parse(line)
        except DecodeError as e:
            if e.reason.startswith("schema"):
                self._log.warning("INVALID_CARTRIDGE_DATA reason=%s line=%r", e.reason, line)
            else:
                self._log.debug("DEVICE_DIAGNOSTIC line=%r", line)
            return None

        if isinstance(result, CartridgeRecord):
            self._log.info("CARTRIDGE_DECODED name=%s path=%s", result.name, result.path_name)
        else:
            self._log.info("CARTRIDGE_REMOVAL_SIGNAL token=%s", result.token)
        return result
