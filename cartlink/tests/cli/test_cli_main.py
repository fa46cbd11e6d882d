from __future__ import annotations

import threading
import time
from dataclasses import replace
from types import SimpleNamespace

import pytest

import cartlink.cli.main as main_mod
import cartlink.transport.ports as ports_mod
from cartlink.app.config import CartLinkConfig, SupervisorSettings, TransportSettings
from cartlink.cli.args import parse_args
from cartlink.cli.commands import cmd_watch
from cartlink.cli.main import main
from cartlink.model.port import PortDescriptor
from cartlink.transport.registry import TransportDriverRegistry


@pytest.fixture(autouse=True)
def _no_root_handlers(monkeypatch):
    monkeypatch.setattr(main_mod, "configure_logging", lambda **kw: None)


def test_parse_watch_args():
    args = parse_args(["-vv", "watch", "--no-launch", "--secs", "1.5", "--send", "PING", "--send", "IDENTIFY"])
    assert args.cmd == "watch"
    assert args.verbose == 2
    assert args.no_launch is True
    assert args.secs == 1.5
    assert args.send == ["PING", "IDENTIFY"]


def test_probe_requires_port():
    with pytest.raises(SystemExit):
        parse_args(["probe"])


def test_missing_config_prints_error_and_hint(tmp_path, capsys):
    rc = main(["--config", str(tmp_path / "nope.yaml"), "ports"])

    out = capsys.readouterr().out
    assert rc == 1
    assert "ERROR: Config file not found" in out
    assert "Hint:" in out


def test_ports_marks_candidates(monkeypatch, capsys):
    infos = [
        SimpleNamespace(device="COM1", vid=None, pid=None, manufacturer=None, serial_number=None, description="Communications Port"),
        SimpleNamespace(device="COM3", vid=0x10C4, pid=0xEA60, manufacturer="Silicon Labs", serial_number=None, description="CP2102"),
    ]
    monkeypatch.setattr(ports_mod.list_ports, "comports", lambda: infos)

    assert main(["ports"]) == 0
    out = capsys.readouterr().out
    assert "COM3" in out
    assert "COM1" not in out

    assert main(["ports", "--all"]) == 0
    out = capsys.readouterr().out
    assert "* COM3" in out
    assert "COM1" in out


class ScriptedReader:
    """Answers IDENTIFY, announces one cartridge per open and keeps every write."""
    writes: list[bytes] = []

    def __init__(self, path, baudrate=115200, timeout=0.05):
        self.path = path
        self._open = False
        self._rx: list[bytes] = []
        self._lock = threading.Lock()

    def open(self):
        self._open = True
        with self._lock:
            self._rx.append(b'{"name":"Zelda","icon":null,"pathName":"C:/g.exe"}\n')

    def close(self):
        self._open = False

    def is_open(self):
        return self._open

    def read(self, n):
        with self._lock:
            if self._rx:
                return self._rx.pop(0)
        time.sleep(0.002)
        return b""

    def write(self, data):
        ScriptedReader.writes.append(data)
        if data == b"IDENTIFY\n":
            with self._lock:
                self._rx.append(b"RETRO_LAUNCHER\n")
        return len(data)

    def flush(self):
        return None


class OneReader:
    def list_ports(self):
        return [PortDescriptor("COM3", vendor_id="10c4", product_id="ea60")]


def test_watch_prints_events_and_sends_queued_commands(capsys):
    ScriptedReader.writes = []
    config = replace(
        CartLinkConfig(),
        transport=TransportSettings(driver="scripted"),
        supervisor=SupervisorSettings(scan_interval_s=0.01, reconnect_interval_s=0.01),
    )

    rc = cmd_watch(
        config,
        launch=False,
        secs=0.6,
        send=["PING", "STATUS"],
        drivers=TransportDriverRegistry({"scripted": ScriptedReader}),
        enumerator=OneReader(),
    )

    out = capsys.readouterr().out
    assert rc == 0
    assert "EVENT connected port='COM3'" in out
    assert "EVENT record_detected" in out
    assert "SENT 'PING'" in out
    assert "SENT 'STATUS'" in out
    assert "Final state: Connected port=COM3" in out
    sent = [w for w in ScriptedReader.writes if w != b"IDENTIFY\n"]
    assert sent == [b"PING\n", b"STATUS\n"]


def test_config_accepted_before_or_after_subcommand():
    assert parse_args(["watch", "--config", "f.yaml"]).config == "f.yaml"
    assert parse_args(["--config", "g.yaml", "watch"]).config == "g.yaml"
    assert parse_args(["probe", "--port", "COM3"]).config is None
