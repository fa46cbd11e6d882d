# cartlink/model/cartridge.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class CartridgeRecord:
    """
    One cartridge as announced by the reader.

    Wire schema (one JSON object per line):
        {"name": str, "icon": str | null, "pathName": str}
    """
    name: str
    icon: Optional[str]
    path_name: str

    @classmethod
    def from_mapping(cls, data: Any) -> "CartridgeRecord":
        """
        Validate a decoded JSON value against the wire schema.

        Raises ValueError describing the first violation.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        for key in ("name", "icon", "pathName"):
            if key not in data:
                raise ValueError(f"missing field '{key}'")

        name = data["name"]
        icon = data["icon"]
        path_name = data["pathName"]

        if not isinstance(name, str):
            raise ValueError("field 'name' must be a string")
        if icon is not None and not isinstance(icon, str):
            raise ValueError("field 'icon' must be a string or null")
        if not isinstance(path_name, str):
            raise ValueError("field 'pathName' must be a string")

        return cls(name=name, icon=icon, path_name=path_name)

    @property
    def launchable(self) -> bool:
        return bool(self.path_name.strip())

    def as_dict(self) -> dict:
        return {"name": self.name, "icon": self.icon, "pathName": self.path_name}
