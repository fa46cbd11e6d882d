# cartlink/app/config.py
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Tuple

import yaml

from cartlink.core.errors import ConfigError
from cartlink.discovery.classifier import DEFAULT_MANUFACTURERS, DEFAULT_USB_IDS
from cartlink.discovery.validator import DEFAULT_COMMAND, DEFAULT_SIGNATURES
from cartlink.protocol.decoder import DEFAULT_REMOVAL_TOKENS


@dataclass(frozen=True)
class TransportSettings:
    driver: str = "uart"
    baudrate: int = 115200
    read_timeout_s: float = 0.05


@dataclass(frozen=True)
class DiscoverySettings:
    usb_ids: Tuple[Tuple[str, str], ...] = DEFAULT_USB_IDS
    manufacturers: Tuple[str, ...] = DEFAULT_MANUFACTURERS


@dataclass(frozen=True)
class HandshakeSettings:
    command: str = DEFAULT_COMMAND
    signatures: Tuple[str, ...] = DEFAULT_SIGNATURES
    timeout_s: float = 2.0


@dataclass(frozen=True)
class SessionSettings:
    connect_timeout_s: float = 5.0
    read_size: int = 256


@dataclass(frozen=True)
class SupervisorSettings:
    scan_interval_s: float = 2.0
    reconnect_interval_s: float = 3.0
    max_retries: int = 3
    auto_launch: bool = True
    disconnect_on_removal: bool = False


@dataclass(frozen=True)
class ProtocolSettings:
    removal_tokens: Tuple[str, ...] = DEFAULT_REMOVAL_TOKENS


@dataclass(frozen=True)
class CartLinkConfig:
    transport: TransportSettings = field(default_factory=TransportSettings)
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)
    handshake: HandshakeSettings = field(default_factory=HandshakeSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    supervisor: SupervisorSettings = field(default_factory=SupervisorSettings)
    protocol: ProtocolSettings = field(default_factory=ProtocolSettings)


# ---------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------

_SECTIONS = frozenset(f.name for f in fields(CartLinkConfig))


def _usb_ids(value: Any) -> Tuple[Tuple[str, str], ...]:
    """Accept ["10c4:ea60", ...] or [{vendor_id: ..., product_id: ...}, ...]."""
    if not isinstance(value, list):
        raise ValueError("usb_ids must be a list")
    out = []
    for item in value:
        if isinstance(item, str) and ":" in item:
            vid, pid = item.split(":", 1)
        elif isinstance(item, Mapping) and "vendor_id" in item and "product_id" in item:
            vid, pid = item["vendor_id"], item["product_id"]
        else:
            raise ValueError(f"invalid usb id entry {item!r} (use 'vvvv:pppp')")
        out.append((str(vid).strip().lower(), str(pid).strip().lower()))
    return tuple(out)


def _str_tuple(value: Any, name: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{name} must be a list of strings")
    return tuple(value)


def _coerce(section: str, name: str, default: Any, value: Any) -> Any:
    if section == "discovery" and name == "usb_ids":
        return _usb_ids(value)
    if isinstance(default, tuple):
        return _str_tuple(value, f"{section}.{name}")
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{section}.{name} must be true/false")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{section}.{name} must be an integer")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{section}.{name} must be a number")
        if value < 0:
            raise ValueError(f"{section}.{name} must not be negative")
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"{section}.{name} must be a string")
    return value


def config_from_mapping(data: Mapping[str, Any]) -> CartLinkConfig:
    """
    Build a config from a parsed mapping; missing keys keep their defaults.

    Raises ValueError on unknown keys or wrong types.
    """
    if not isinstance(data, Mapping):
        raise ValueError("config root must be a mapping")

    cfg = CartLinkConfig()
    for section, raw in data.items():
        if section not in _SECTIONS:
            raise ValueError(f"unknown config section '{section}'")
        if raw is None:
            continue
        if not isinstance(raw, Mapping):
            raise ValueError(f"section '{section}' must be a mapping")

        current = getattr(cfg, section)
        known = {f.name for f in fields(current)}
        updates = {}
        for name, value in raw.items():
            if name not in known:
                raise ValueError(f"unknown key '{section}.{name}'")
            updates[name] = _coerce(section, name, getattr(current, name), value)
        cfg = replace(cfg, **{section: replace(current, **updates)})

    if cfg.supervisor.max_retries < 1:
        raise ValueError("supervisor.max_retries must be >= 1")
    return cfg


def load_config(path: str | Path) -> CartLinkConfig:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return config_from_mapping(data)
    except FileNotFoundError:
        raise ConfigError(
            f"Config file not found: {path}",
            hint="Pass an existing YAML file with --config.",
        ) from None
    except yaml.YAMLError as e:
        raise ConfigError(
            "Config file is not valid YAML.",
            hint=str(e),
            details={"path": str(path)},
        ) from None
    except ValueError as e:
        raise ConfigError(
            "Invalid configuration.",
            hint=str(e),
            details={"path": str(path)},
        ) from None
