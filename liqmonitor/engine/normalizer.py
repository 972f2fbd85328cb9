# liqmonitor/engine/normalizer.py
import datetime as dt
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from pydantic import ValidationError

from ..errors import NormalizationSkipped
from ..schemas import (
    LIQUIDATE,
    RENT_RESOURCE,
    RETURN_RESOURCE,
    DomainEvent,
    Liquidate,
    RawEventRecord,
    RentResource,
    ReturnResource,
)

EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


def occurred_at(block_timestamp_ms: int) -> dt.datetime:
    # integer ms arithmetic, no float rounding
    return EPOCH + dt.timedelta(milliseconds=block_timestamp_ms)


def _uint(record: RawEventRecord, key: str) -> str:
    """
    Result field → canonical decimal string, "0" when absent.
    On-chain uint256 values routinely exceed float precision, so only
    non-negative ints and integer strings (decimal or 0x-hex) are accepted.
    """
    value = record.result_fields.get(key)
    if value is None or value == "":
        return "0"
    try:
        if isinstance(value, int) and not isinstance(value, bool):
            if value >= 0:
                return str(value)
        elif isinstance(value, str):
            s = value.strip()
            if s.isascii() and s.isdigit():
                return str(int(s))
            if s[:2].lower() == "0x":
                return str(int(s, 16))
    except ValueError:
        # bad hex digits or past the int string-conversion limit
        pass
    shown = value[:40] if isinstance(value, str) else type(value).__name__
    raise NormalizationSkipped(record.event_kind, f"field {key!r} is not an unsigned integer: {shown!r}")


def _address(record: RawEventRecord, *keys: str) -> str:
    for key in keys:
        value = record.result_fields.get(key)
        if value:
            return str(value)
    return ""


def _common(record: RawEventRecord) -> Dict[str, Any]:
    return {
        "block_number": record.block_number,
        "block_timestamp": record.block_timestamp,
        "transaction_id": record.transaction_id,
        "occurred_at": occurred_at(record.block_timestamp),
        "user": _address(record, "renter", "user"),
        "resource_type": _uint(record, "resourceType"),
        "rent_index": _uint(record, "rentIndex"),
    }


def _rent_resource(record: RawEventRecord) -> RentResource:
    return RentResource(
        **_common(record),
        receiver=_address(record, "receiver"),
        amount=_uint(record, "addedAmount"),
        security_deposit_added=_uint(record, "addedSecurityDeposit"),
        total_amount=_uint(record, "amount"),
        total_security_deposit=_uint(record, "securityDeposit"),
    )


def _return_resource(record: RawEventRecord) -> ReturnResource:
    return ReturnResource(
        **_common(record),
        receiver=_address(record, "receiver"),
        amount=_uint(record, "subedAmount"),
        usage_rental=_uint(record, "usageRental"),
        security_deposit_subtracted=_uint(record, "subedSecurityDeposit"),
        total_amount=_uint(record, "amount"),
        total_security_deposit=_uint(record, "securityDeposit"),
    )


def _liquidate(record: RawEventRecord) -> Liquidate:
    return Liquidate(
        **_common(record),
        liquidator=_address(record, "liquidator"),
        amount=_uint(record, "amount"),
        dirty_rent=_uint(record, "dirtyRent"),
        total_amount=_uint(record, "totalAmount"),
        total_security_deposit=_uint(record, "totalSecurityDeposit"),
    )


BUILDERS: Dict[str, Callable[[RawEventRecord], DomainEvent]] = {
    RENT_RESOURCE: _rent_resource,
    RETURN_RESOURCE: _return_resource,
    LIQUIDATE: _liquidate,
}


def normalize(record: RawEventRecord) -> Optional[DomainEvent]:
    """
    Raw record → typed domain event.
    - unknown kind → None (debug log)
    - malformed record of a known kind → NormalizationSkipped
    """
    builder = BUILDERS.get(record.event_kind)
    if builder is None:
        logger.debug(f"Ignoring event: {record.event_kind}")
        return None

    try:
        event = builder(record)
    except ValidationError as e:
        raise NormalizationSkipped(record.event_kind, str(e)) from e

    logger.info(
        f"{event.kind} event processed tx={event.transaction_id} block={event.block_number}"
    )
    return event


def normalize_batch(
    records: Sequence[RawEventRecord],
    normalizer: Callable[[RawEventRecord], Optional[DomainEvent]] = normalize,
) -> Tuple[List[DomainEvent], int]:
    """
    Normalize every record, isolating failures per record.
    Returns (events, skipped) where skipped counts unknown and malformed records.
    """
    events: List[DomainEvent] = []
    skipped = 0
    for record in records:
        try:
            event = normalizer(record)
        except NormalizationSkipped as e:
            logger.info(f"Skipped malformed {e.event_kind} record tx={record.transaction_id}: {e.reason}")
            skipped += 1
            continue
        except Exception as e:
            logger.opt(exception=e).error(
                f"Error normalizing {record.event_kind} record tx={record.transaction_id}, skipping it"
            )
            skipped += 1
            continue
        if event is None:
            skipped += 1
            continue
        events.append(event)
    return events, skipped
