from .dispatcher import ActionDispatcher, DispatchResult
from .event_sink import DeviceEvent, EventKind, EventSink

__all__ = ["ActionDispatcher", "DeviceEvent", "DispatchResult", "EventKind", "EventSink"]
