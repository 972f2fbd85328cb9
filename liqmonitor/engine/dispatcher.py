# liqmonitor/engine/dispatcher.py
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from loguru import logger

from ..errors import HandlerFault
from ..schemas import EVENT_KINDS, DomainEvent

Handler = Callable[[DomainEvent], None]


def handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class BaseDispatcher(ABC):
    @abstractmethod
    def register(self, kind: str, handler: Handler):
        ...

    @abstractmethod
    def dispatch(self, event: DomainEvent) -> List[HandlerFault]:
        """Deliver one event, returning the handler faults that were contained."""
        ...


class EventDispatcher(BaseDispatcher):
    """
    Synchronous, in-process dispatcher.
    - handlers run in registration order, one event at a time
    - a raising handler is logged and skipped, the rest still run
    Handlers must return quickly; slow work belongs on the handler's own worker.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def register(self, kind: str, handler: Handler):
        if kind not in EVENT_KINDS:
            raise ValueError(f"unknown event kind {kind!r}, expected one of {EVENT_KINDS}")
        if not callable(handler):
            raise TypeError(f"handler for {kind} is not callable: {handler!r}")
        self._handlers.setdefault(kind, []).append(handler)

    def on(self, kind: str):
        """Decorator form of register()."""
        def deco(fn: Handler) -> Handler:
            self.register(kind, fn)
            return fn
        return deco

    def handlers_for(self, kind: str) -> List[Handler]:
        return list(self._handlers.get(kind, []))

    def dispatch(self, event: DomainEvent) -> List[HandlerFault]:
        faults: List[HandlerFault] = []
        for handler in self.handlers_for(event.kind):
            try:
                handler(event)
            except Exception as e:
                fault = HandlerFault(event.kind, handler_name(handler), e)
                logger.opt(exception=e).error(
                    f"Error in event handler {fault.handler_name} for {event.kind} "
                    f"(tx={event.transaction_id})"
                )
                faults.append(fault)
        return faults
