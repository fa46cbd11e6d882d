# cartlink/interfaces/dispatcher.py
from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True, slots=True)
class DispatchResult:
    path: str
    ok: bool
    error: Optional[str] = None


class ActionDispatcher(Protocol):
    """Launches a cartridge's executable; completion is reported through the future."""
    def launch(self, path: str) -> "Future[DispatchResult]": ...
