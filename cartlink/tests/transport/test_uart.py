from __future__ import annotations

import pytest

import cartlink.transport.uart as uart_mod
from cartlink.transport.errors import TransportIOError, TransportOpenError


class FakeSerial:
    def __init__(self, port=None, baudrate=9600, timeout=None, write_timeout=None, **kwargs):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.write_timeout = write_timeout
        self.settings = kwargs
        self.is_open = False

        self._read_chunks = []
        self._raise_on_open = None
        self._raise_on_read = None
        self._raise_on_write = None
        self._raise_on_flush = None
        self.in_waiting = 0

        self.opened_port = None
        self.writes = []
        self.reset_in_called = 0
        self.reset_out_called = 0
        self.flush_called = 0
        self.close_called = 0

    def open(self):
        if self._raise_on_open is not None:
            raise self._raise_on_open
        self.opened_port = self.port
        self.is_open = True

    def reset_input_buffer(self):
        self.reset_in_called += 1

    def reset_output_buffer(self):
        self.reset_out_called += 1

    def read(self, n: int) -> bytes:
        if self._raise_on_read is not None:
            raise self._raise_on_read
        if not self._read_chunks:
            return b""
        chunk = self._read_chunks.pop(0)
        out, rest = chunk[:n], chunk[n:]
        if rest:
            self._read_chunks.insert(0, rest)
        self.in_waiting = sum(len(c) for c in self._read_chunks)
        return out

    def write(self, data: bytes) -> int:
        if self._raise_on_write is not None:
            raise self._raise_on_write
        self.writes.append(data)
        return len(data)

    def flush(self) -> None:
        self.flush_called += 1
        if self._raise_on_flush is not None:
            raise self._raise_on_flush

    def close(self) -> None:
        self.close_called += 1
        self.is_open = False


def _install(monkeypatch, s: FakeSerial) -> FakeSerial:
    def fake_serial_ctor(*a, **k):
        s.__init__(*a, **k)
        return s

    monkeypatch.setattr(uart_mod.serial, "Serial", fake_serial_ctor)
    return s


def test_open_success_resets_buffers_and_uses_8n1(monkeypatch):
    s = _install(monkeypatch, FakeSerial())

    t = uart_mod.UARTTransport("COM5", baudrate=9600, timeout=0.1)
    t.open()

    assert t.ser is s
    assert t.is_open() is True
    assert s.opened_port == "COM5"
    assert s.baudrate == 9600
    assert s.settings["bytesize"] == uart_mod.serial.EIGHTBITS
    assert s.settings["parity"] == uart_mod.serial.PARITY_NONE
    assert s.settings["stopbits"] == uart_mod.serial.STOPBITS_ONE
    assert s.reset_in_called == 1
    assert s.reset_out_called == 1


def test_open_serial_exception_raises_transport_open_error(monkeypatch):
    s = FakeSerial()

    def fake_serial_ctor(*a, **k):
        s.__init__(*a, **k)
        s._raise_on_open = uart_mod.SerialException("no port")
        return s

    monkeypatch.setattr(uart_mod.serial, "Serial", fake_serial_ctor)

    t = uart_mod.UARTTransport("COM404")
    with pytest.raises(TransportOpenError):
        t.open()

    assert t.ser is None
    assert s.close_called == 1


def test_io_not_open_raises():
    t = uart_mod.UARTTransport("COM1")
    with pytest.raises(TransportIOError):
        t.read(1)
    with pytest.raises(TransportIOError):
        t.write(b"x")
    with pytest.raises(TransportIOError):
        t.flush()


def test_read_returns_first_byte_plus_buffered(monkeypatch):
    s = _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()
    s._read_chunks = [b"hello\n"]

    assert t.read(64) == b"hello\n"


def test_read_caps_at_n(monkeypatch):
    s = _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()
    s._read_chunks = [b"abcdef"]

    assert t.read(3) == b"abc"
    assert t.read(3) == b"def"


def test_read_timeout_returns_empty(monkeypatch):
    _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()

    assert t.read(16) == b""


def test_read_serial_exception_drops_handle_and_raises(monkeypatch):
    s = _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()
    s._raise_on_read = uart_mod.SerialException("unplugged")

    with pytest.raises(TransportIOError):
        t.read(1)

    assert t.ser is None
    assert s.close_called == 1


def test_write_and_flush(monkeypatch):
    s = _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()

    assert t.write(b"IDENTIFY\n") == 9
    t.flush()

    assert s.writes == [b"IDENTIFY\n"]
    assert s.flush_called == 1


def test_write_os_error_raises_io_error(monkeypatch):
    s = _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()
    s._raise_on_write = OSError("gone")

    with pytest.raises(TransportIOError):
        t.write(b"x")
    assert t.is_open() is False


def test_close_is_idempotent(monkeypatch):
    s = _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()

    t.close()
    t.close()

    assert s.close_called == 1
    assert t.is_open() is False


def test_close_error_raises_io_error_and_releases_handle(monkeypatch):
    s = _install(monkeypatch, FakeSerial())
    t = uart_mod.UARTTransport("COM1")
    t.open()

    def bad_close():
        raise uart_mod.SerialException("device vanished during close")

    s.close = bad_close

    with pytest.raises(TransportIOError):
        t.close()
    assert t.ser is None
    t.close()
