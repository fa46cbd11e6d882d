# cartlink/app/controller.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from cartlink.app.config import CartLinkConfig
from cartlink.core.errors import ConfigError
from cartlink.discovery.classifier import DeviceClassifier
from cartlink.discovery.validator import HandshakeValidator
from cartlink.interfaces import ActionDispatcher, DeviceEvent, EventSink
from cartlink.model.cartridge import CartridgeRecord
from cartlink.model.state import ConnectionState, SupervisorStatus
from cartlink.protocol.decoder import ProtocolDecoder
from cartlink.runtime.session import ConnectionSession, LineCallback, StateCallback
from cartlink.runtime.supervisor import PortLister, ReconnectionSupervisor, RetryPolicy
from cartlink.transport.errors import TransportError
from cartlink.transport.ports import PortEnumerator
from cartlink.transport.registry import TransportDriverRegistry, TransportFactory


class CartLinkController:
    """
    App-level facade: builds the device session manager from config and
    exposes the commands the UI layer is allowed to issue.
    """

    def __init__(
        self,
        config: CartLinkConfig,
        *,
        dispatcher: Optional[ActionDispatcher] = None,
        drivers: Optional[TransportDriverRegistry] = None,
        enumerator: Optional[PortLister] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._log = logger or logging.getLogger(__name__)

        drivers = drivers or TransportDriverRegistry.default()
        try:
            self._transport_factory: TransportFactory = drivers.factory(
                config.transport.driver,
                baudrate=config.transport.baudrate,
                timeout=config.transport.read_timeout_s,
            )
        except TransportError:
            raise ConfigError(
                f"Unknown transport driver '{config.transport.driver}'.",
                hint=f"Known drivers: {', '.join(drivers.drivers())}",
            ) from None

        self._classifier = DeviceClassifier(
            usb_ids=config.discovery.usb_ids,
            manufacturers=config.discovery.manufacturers,
        )
        self._validator = HandshakeValidator(
            self._transport_factory,
            command=config.handshake.command,
            signatures=config.handshake.signatures,
            timeout_s=config.handshake.timeout_s,
            logger=self._log,
        )

        sup = config.supervisor
        self._supervisor = ReconnectionSupervisor(
            enumerator=enumerator or PortEnumerator(logger=self._log),
            classifier=self._classifier,
            validator=self._validator,
            session_factory=self._make_session,
            decoder=ProtocolDecoder(config.protocol.removal_tokens, logger=self._log),
            dispatcher=dispatcher,
            policy=RetryPolicy(
                scan_interval_s=sup.scan_interval_s,
                reconnect_interval_s=sup.reconnect_interval_s,
                max_retries=sup.max_retries,
            ),
            auto_launch=sup.auto_launch,
            disconnect_on_removal=sup.disconnect_on_removal,
            logger=self._log,
        )

        self._sinks: list[EventSink] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def config(self) -> CartLinkConfig:
        return self._config

    @property
    def supervisor(self) -> ReconnectionSupervisor:
        return self._supervisor

    @property
    def classifier(self) -> DeviceClassifier:
        return self._classifier

    @property
    def validator(self) -> HandshakeValidator:
        return self._validator

    def add_sink(self, sink: EventSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def start(self) -> None:
        self._subscribe_once()
        try:
            self._supervisor.start_scanning()
        except Exception:
            try:
                self.stop()
            except Exception:
                self._log.exception("CONTROLLER_STOP_AFTER_START_FAIL")
            raise

    def stop(self) -> None:
        try:
            self._supervisor.stop_scanning()
        except Exception:
            self._log.exception("SUPERVISOR_STOP_ERROR")

        if self._unsubscribe:
            try:
                self._unsubscribe()
            finally:
                self._unsubscribe = None

        for s in list(self._sinks):
            try:
                s.close()
            except Exception:
                self._log.exception("SINK_CLOSE_ERROR")
        self._sinks.clear()

    def __enter__(self) -> "CartLinkController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _subscribe_once(self) -> None:
        if self._unsubscribe is not None:
            return

        def _fanout(event: DeviceEvent) -> None:
            for s in list(self._sinks):
                try:
                    s.on_event(event)
                except Exception:
                    self._log.exception("SINK_ON_EVENT_ERROR kind=%s", event.kind.value)

        self._unsubscribe = self._supervisor.subscribe(_fanout)

    def _make_session(self, path: str, on_line: LineCallback, on_state: StateCallback) -> ConnectionSession:
        return ConnectionSession(
            path,
            self._transport_factory(path),
            connect_timeout_s=self._config.session.connect_timeout_s,
            read_size=self._config.session.read_size,
            on_line=on_line,
            on_state=on_state,
            logger=self._log,
        )

    # passthrough ops
    def send_raw_command(self, command: str) -> None:
        self._supervisor.send_raw_command(command)

    def reconnect(self) -> None:
        self._supervisor.reconnect()

    def start_scanning(self) -> None:
        self._subscribe_once()
        self._supervisor.start_scanning()

    def stop_scanning(self) -> None:
        self._supervisor.stop_scanning()

    def get_current_record(self) -> Optional[CartridgeRecord]:
        return self._supervisor.current_record

    def get_connection_state(self) -> ConnectionState:
        return self._supervisor.state

    def status(self) -> SupervisorStatus:
        return self._supervisor.status()
