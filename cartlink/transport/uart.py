# cartlink/transport/uart.py
from __future__ import annotations

from typing import Optional

import serial
from serial import SerialException

from .base import Transport
from .errors import TransportIOError, TransportOpenError

DEFAULT_BAUDRATE = 115200


class UARTTransport(Transport):
    """
    UART transport implemented via pyserial, fixed at 8N1.

    The port object is created closed (port=None) and opened explicitly, so a
    failed open never leaves a half-initialised handle behind.

    read(n) blocks for at most `timeout` seconds waiting for the first byte,
    then returns whatever else is already buffered (up to n bytes).
    """

    def __init__(self, path: str, baudrate: int = DEFAULT_BAUDRATE, timeout: float = 0.05):
        self.path = path
        self.baudrate = int(baudrate)
        self.timeout = float(timeout)
        self.ser: Optional[serial.Serial] = None

    def open(self) -> None:
        if self.is_open():
            return
        ser = serial.Serial(
            port=None,
            baudrate=self.baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=self.timeout,
            write_timeout=self.timeout,
        )
        ser.port = self.path
        try:
            ser.open()
            ser.reset_input_buffer()
            ser.reset_output_buffer()
        except (SerialException, OSError) as e:
            try:
                ser.close()
            finally:
                self.ser = None
            raise TransportOpenError(str(e)) from None
        self.ser = ser

    def close(self) -> None:
        ser, self.ser = self.ser, None
        if ser is None:
            return
        try:
            ser.close()
        except (SerialException, OSError) as e:
            raise TransportIOError(f"UART close failed: {e}") from None

    def is_open(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def read(self, n: int) -> bytes:
        ser = self.ser
        if ser is None:
            raise TransportIOError("read while transport not open")

        try:
            buf = ser.read(1)
            if not buf:
                return b""
            waiting = ser.in_waiting
            if waiting and n > 1:
                buf += ser.read(min(waiting, n - 1))
            return bytes(buf)
        except (SerialException, OSError) as e:
            self._drop()
            raise TransportIOError(f"UART read failed: {e}") from None

    def write(self, data: bytes) -> int:
        ser = self.ser
        if ser is None:
            raise TransportIOError("write while transport not open")

        try:
            return ser.write(data)
        except (SerialException, OSError) as e:
            self._drop()
            raise TransportIOError(f"UART write failed: {e}") from None

    def flush(self) -> None:
        ser = self.ser
        if ser is None:
            raise TransportIOError("flush while transport not open")

        try:
            ser.flush()
        except (SerialException, OSError) as e:
            self._drop()
            raise TransportIOError(f"UART flush failed: {e}") from None

    def _drop(self) -> None:
        # The handle is unusable after an I/O error; release the OS resource.
        ser, self.ser = self.ser, None
        if ser is not None:
            try:
                ser.close()
            except (SerialException, OSError):
                pass

    def __repr__(self) -> str:
        return f"UARTTransport(path='{self.path}', baudrate={self.baudrate})"
