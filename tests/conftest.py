import pytest
from loguru import logger

from liqmonitor.config import ENV_KEYS
from liqmonitor.schemas import RawEventRecord


def make_record(kind="Liquidate", ts=100, tx=None, result=None, block=1, index=None):
    return RawEventRecord(
        event_name=kind,
        block_number=block,
        block_timestamp=ts,
        transaction_id=tx or f"tx-{kind}-{ts}",
        result=result if result is not None else {},
        event_index=index,
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def log_messages():
    messages = []
    sink_id = logger.add(lambda m: messages.append(m.record), level="DEBUG", format="{message}")
    yield messages
    logger.remove(sink_id)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
