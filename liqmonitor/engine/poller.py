# liqmonitor/engine/poller.py
import enum
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from ..connectors.base_events import BaseEventSource
from ..errors import SourceUnavailable
from ..schemas import DomainEvent, RawEventRecord
from .dispatcher import BaseDispatcher
from .normalizer import normalize, normalize_batch
from .watermark import WatermarkTracker


class PollerState(enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class CycleResult:
    fetched: int = 0
    fresh: int = 0
    delivered: int = 0
    skipped: int = 0
    handler_faults: int = 0
    source_failed: bool = False


class EventPoller:
    """
    Drives fetch → filter → normalize → dispatch → advance at a fixed delay.

    Cycles run one after another on a single worker thread; the delay is
    measured from the end of a cycle, so a slow cycle never overlaps the next.
    stop() lets an in-flight cycle finish and prevents the next one.
    """

    def __init__(
        self,
        source: BaseEventSource,
        dispatcher: BaseDispatcher,
        tracker: Optional[WatermarkTracker] = None,
        interval_ms: int = 3000,
        normalizer: Callable[[RawEventRecord], Optional[DomainEvent]] = normalize,
    ):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self.source = source
        self.dispatcher = dispatcher
        self.tracker = tracker or WatermarkTracker()
        self.interval = interval_ms / 1000.0
        self.normalizer = normalizer

        self._state = PollerState.STOPPED
        self._state_lock = threading.RLock()
        self._wakeup = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is PollerState.RUNNING

    def start(self):
        with self._state_lock:
            if self._state is PollerState.RUNNING:
                logger.info("Event poller is already running")
                return
            previous = self._thread

        # let the cycle of the previous run finish first, without holding the lock
        if previous is not None and previous.is_alive() and previous is not threading.current_thread():
            previous.join()

        with self._state_lock:
            if self._state is PollerState.RUNNING:
                logger.info("Event poller is already running")
                return
            logger.info(
                f"Starting event poller for {self.source.contract_address} "
                f"(interval={self.interval:.3f}s, watermark={self.tracker.value})"
            )
            self._wakeup = threading.Event()
            self._state = PollerState.RUNNING
            self._thread = threading.Thread(
                target=self._run, args=(self._wakeup,), name="event-poller", daemon=True
            )
            self._thread.start()

    def stop(self):
        with self._state_lock:
            if self._state is PollerState.STOPPED:
                return
            logger.info("Stopping event poller...")
            self._state = PollerState.STOPPED
            self._wakeup.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread. True once it has exited."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run(self, wakeup: threading.Event):
        while not wakeup.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                logger.exception(f"Error during event polling: {e}")

            if wakeup.wait(self.interval):
                break
        logger.info("Event poller stopped")

    def run_cycle(self) -> CycleResult:
        """One complete poll cycle, run synchronously on the caller's thread."""
        self.cycles += 1
        try:
            records = self.source.fetch_records()
        except SourceUnavailable as e:
            logger.warning(f"Event source unavailable, skipping cycle: {e}")
            return CycleResult(source_failed=True)

        fresh = self.tracker.filter_new(records)
        if not fresh:
            return CycleResult(fetched=len(records))

        logger.info(f"Found {len(fresh)} new events")
        events, skipped = normalize_batch(fresh, self.normalizer)

        faults = 0
        for event in events:
            faults += len(self.dispatcher.dispatch(event))

        # advance on every fresh record, including skipped ones, so they are not refetched forever
        self.tracker.advance(fresh)

        return CycleResult(
            fetched=len(records),
            fresh=len(fresh),
            delivered=len(events),
            skipped=skipped,
            handler_faults=faults,
        )
