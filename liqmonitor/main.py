# liqmonitor/main.py
import argparse
import signal
import sys
import threading
from typing import List, Optional

from loguru import logger

from .bots.telegram_bot import TelegramAlerter
from .config import MonitorConfig, load_config
from .connectors.trongrid import TronGridEventSource
from .engine.dispatcher import EventDispatcher
from .engine.poller import EventPoller
from .engine.watermark import WatermarkTracker
from .errors import ConfigurationError, SourceUnavailable
from .log import setup_logging
from .schemas import EVENT_KINDS, LIQUIDATE, DomainEvent


def log_event(event: DomainEvent):
    logger.info(f"{event.kind} event received: {event.model_dump(mode='json')}")


def build_dispatcher(config: MonitorConfig) -> EventDispatcher:
    dispatcher = EventDispatcher()
    for kind in EVENT_KINDS:
        dispatcher.register(kind, log_event)

    if config.telegram_enabled:
        alerter = TelegramAlerter(
            bot_token=config.telegram_bot_token,
            chat_id=config.telegram_chat_id,
        )
        dispatcher.register(LIQUIDATE, alerter)
        logger.info("Telegram alerts enabled for Liquidate events")
    return dispatcher


def build_poller(config: MonitorConfig, source: TronGridEventSource) -> EventPoller:
    tracker = WatermarkTracker(
        initial=config.start_watermark,
        dedupe_same_timestamp=config.dedupe_same_timestamp,
    )
    return EventPoller(
        source=source,
        dispatcher=build_dispatcher(config),
        tracker=tracker,
        interval_ms=config.poll_interval_ms,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="liqmonitor",
        description="Watch the market contract and dispatch RentResource / ReturnResource / Liquidate events.",
    )
    parser.add_argument("--config", default=None, help="YAML config file (default: ./config.yaml if present)")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config, overrides={"log_level": args.log_level})
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(config.log_level, config.log_file)
    logger.info("Starting liquidate monitor...")

    source = TronGridEventSource(
        endpoint=config.endpoint,
        contract_address=config.contract_address,
        api_key=config.api_key,
        timeout=config.request_timeout_seconds,
        limit=config.page_limit,
    )
    if not config.api_key:
        logger.warning("TRON_API_KEY not set, TronGrid requests are rate limited")

    try:
        block = source.get_current_block()
    except SourceUnavailable as e:
        logger.error(f"Failed to connect to TRON network: {e}")
        source.close()
        return 1
    logger.info(f"Connected to TRON network. Current block: {block}")

    poller = build_poller(config, source)
    stopped = threading.Event()

    def _shutdown(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        poller.stop()
        stopped.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    poller.start()
    logger.info(f"Monitoring {config.contract_address} for events...")

    # short waits keep the main thread responsive to signals
    while not stopped.wait(0.5):
        pass

    poller.join(timeout=config.request_timeout_seconds + 1.0)
    source.close()
    logger.info("Liquidate monitor stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
