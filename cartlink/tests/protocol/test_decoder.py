from __future__ import annotations

import logging

import pytest

from cartlink.model.cartridge import CartridgeRecord
from cartlink.protocol.decoder import DisconnectSignal, ProtocolDecoder
from cartlink.protocol.errors import DecodeError


def test_valid_record_is_decoded():
    dec = ProtocolDecoder()
    rec = dec.decode('{"name":"Tetris","icon":null,"pathName":"/games/tetris"}')

    assert rec == CartridgeRecord(name="Tetris", icon=None, path_name="/games/tetris")
    assert rec.launchable is True
    assert rec.as_dict() == {"name": "Tetris", "icon": None, "pathName": "/games/tetris"}


def test_extra_fields_are_ignored():
    dec = ProtocolDecoder()
    rec = dec.decode('{"name":"A","icon":"a.png","pathName":"/a","uid":"04:A2"}')
    assert rec == CartridgeRecord("A", "a.png", "/a")


def test_diagnostic_text_is_ignored_quietly(caplog):
    dec = ProtocolDecoder()
    with caplog.at_level(logging.DEBUG):
        assert dec.decode("Ready to read NFC cards") is None

    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


@pytest.mark.parametrize(
    "line",
    [
        '{"name":"A","icon":null}',
        '{"name":1,"icon":null,"pathName":"/a"}',
        '{"name":"A","icon":5,"pathName":"/a"}',
        '["name","icon","pathName"]',
    ],
)
def test_schema_violation_returns_none_and_warns(line, caplog):
    dec = ProtocolDecoder()
    with caplog.at_level(logging.WARNING):
        assert dec.decode(line) is None

    assert any("INVALID_CARTRIDGE_DATA" in r.getMessage() for r in caplog.records)


def test_removal_token():
    dec = ProtocolDecoder()
    assert dec.decode("TAG_REMOVED") == DisconnectSignal("TAG_REMOVED")
    assert dec.decode("  TAG_REMOVED \r") == DisconnectSignal("TAG_REMOVED")


def test_custom_removal_tokens():
    dec = ProtocolDecoder(removal_tokens=["CARD_GONE"])
    assert dec.decode("CARD_GONE") == DisconnectSignal("CARD_GONE")
    assert dec.decode("TAG_REMOVED") is None


def test_parse_is_strict():
    dec = ProtocolDecoder()
    with pytest.raises(DecodeError) as ei:
        dec.parse("   ")
    assert ei.value.reason == "empty line"

    with pytest.raises(DecodeError) as ei:
        dec.parse("not json {")
    assert ei.value.reason == "not JSON"

    with pytest.raises(DecodeError) as ei:
        dec.parse('{"name":"A"}')
    assert ei.value.reason.startswith("schema")


def test_empty_path_name_is_not_launchable():
    rec = ProtocolDecoder().decode('{"name":"Blank","icon":null,"pathName":""}')
    assert isinstance(rec, CartridgeRecord)
    assert rec.launchable is False
