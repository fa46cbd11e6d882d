# cartlink/transport/registry.py
from __future__ import annotations

from typing import Callable, Dict, Type

from .base import Transport
from .uart import UARTTransport
from .errors import TransportError

TransportFactory = Callable[[str], Transport]


class TransportDriverRegistry:
    """
    Maps driver keys -> concrete transport classes.

    The controller resolves its driver once at construction time and passes
    the resulting factory down; nothing looks drivers up at call time.
    """

    def __init__(self, drivers: Dict[str, Type[Transport]]):
        # normalize keys to be case-insensitive
        self._drivers: Dict[str, Type[Transport]] = {k.lower(): v for k, v in drivers.items()}

    @classmethod
    def default(cls) -> "TransportDriverRegistry":
        return cls(drivers={"uart": UARTTransport})

    def drivers(self) -> list[str]:
        return sorted(self._drivers)

    def has(self, driver: str) -> bool:
        return driver.lower() in self._drivers

    def get_class(self, driver: str) -> Type[Transport]:
        key = driver.lower()
        if key not in self._drivers:
            raise TransportError(f"Transport driver '{driver}' not registered")
        return self._drivers[key]

    def factory(self, driver: str, **params) -> TransportFactory:
        """
        Bind a driver and its params into a path -> Transport factory.
        """
        transport_cls = self.get_class(driver)

        def _create(path: str) -> Transport:
            return transport_cls(path, **params)

        return _create
