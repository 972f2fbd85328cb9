# liqmonitor/errors.py


class MonitorError(Exception):
    """Base class for every error raised by the monitor."""


class ConfigurationError(MonitorError):
    """A required setting is absent or invalid. Fatal at startup."""


class SourceUnavailable(MonitorError):
    """The event source could not deliver a page of events for this cycle."""


class NormalizationSkipped(MonitorError):
    def __init__(self, event_kind: str, reason: str):
        super().__init__(f"{event_kind}: {reason}")
        self.event_kind = event_kind
        self.reason = reason


class HandlerFault(MonitorError):
    def __init__(self, event_kind: str, handler_name: str, cause: BaseException):
        super().__init__(f"handler {handler_name} failed for {event_kind}: {cause}")
        self.event_kind = event_kind
        self.handler_name = handler_name
        self.cause = cause
