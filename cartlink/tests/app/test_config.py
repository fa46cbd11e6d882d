from __future__ import annotations

import pytest

from cartlink.app.config import CartLinkConfig, config_from_mapping, load_config
from cartlink.core.errors import ConfigError


def test_defaults():
    cfg = CartLinkConfig()
    assert cfg.transport.driver == "uart"
    assert cfg.transport.baudrate == 115200
    assert cfg.handshake.command == "IDENTIFY"
    assert cfg.handshake.timeout_s == 2.0
    assert cfg.session.connect_timeout_s == 5.0
    assert cfg.supervisor.scan_interval_s == 2.0
    assert cfg.supervisor.reconnect_interval_s == 3.0
    assert cfg.supervisor.max_retries == 3
    assert cfg.protocol.removal_tokens == ("TAG_REMOVED",)


def test_load_yaml_overrides_only_given_keys(tmp_path):
    p = tmp_path / "cartlink.yaml"
    p.write_text(
        "transport:\n"
        "  baudrate: 9600\n"
        "discovery:\n"
        "  usb_ids: ['DEAD:BEEF', {vendor_id: '2341', product_id: '0043'}]\n"
        "  manufacturers: [acme]\n"
        "handshake:\n"
        "  signatures: ACME-READER\n"
        "  timeout_s: 1\n"
        "supervisor:\n"
        "  max_retries: 5\n"
        "  disconnect_on_removal: true\n"
        "session:\n",
        encoding="utf-8",
    )

    cfg = load_config(p)

    assert cfg.transport.baudrate == 9600
    assert cfg.transport.driver == "uart"
    assert cfg.discovery.usb_ids == (("dead", "beef"), ("2341", "0043"))
    assert cfg.discovery.manufacturers == ("acme",)
    assert cfg.handshake.signatures == ("ACME-READER",)
    assert cfg.handshake.timeout_s == 1.0
    assert cfg.supervisor.max_retries == 5
    assert cfg.supervisor.disconnect_on_removal is True
    assert cfg.session == CartLinkConfig().session


def test_empty_file_gives_defaults(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config(p) == CartLinkConfig()


@pytest.mark.parametrize(
    "data",
    [
        {"bogus": {}},
        {"transport": {"speed": 1}},
        {"transport": {"baudrate": "fast"}},
        {"supervisor": {"auto_launch": "yes"}},
        {"supervisor": {"max_retries": 0}},
        {"handshake": {"timeout_s": -1}},
        {"discovery": {"usb_ids": ["10c4ea60"]}},
        {"transport": []},
    ],
)
def test_invalid_mappings_raise_value_error(data):
    with pytest.raises(ValueError):
        config_from_mapping(data)


def test_missing_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError) as ei:
        load_config(tmp_path / "nope.yaml")
    assert ei.value.hint


def test_bad_yaml_raises_config_error(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("transport: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(p)


def test_invalid_value_raises_config_error_with_hint(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("supervisor:\n  max_retries: 0\n", encoding="utf-8")
    with pytest.raises(ConfigError) as ei:
        load_config(p)
    assert "max_retries" in ei.value.hint
