from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transport(ABC):
    """
    Abstract byte-stream transport bound to a single port path.

    Contract:
      - open()/close() manage the underlying handle; close() is idempotent
        and must be safe to call even if open() failed.
      - read(n) returns 0..n bytes. It returns b"" when no data arrived within
        the transport's read timeout, so callers can poll a stop flag.
      - write(data) returns the number of bytes written.
      - flush() forces pending output to be transmitted.
    """

    path: str

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    def read(self, n: int) -> bytes: ...

    @abstractmethod
    def write(self, data: bytes) -> int: ...

    @abstractmethod
    def flush(self) -> None: ...

    def __enter__(self) -> "Transport":
        self.open()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()
