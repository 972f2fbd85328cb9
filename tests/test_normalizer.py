import datetime as dt

import pytest

from liqmonitor.engine.normalizer import normalize, normalize_batch, occurred_at
from liqmonitor.errors import NormalizationSkipped
from liqmonitor.schemas import Liquidate, RentResource, ReturnResource

BIG = "115792089237316195423570985008687907853269984665640564039457584007913129639935"


def test_liquidate_fields_are_mapped(record_factory):
    record = record_factory(
        kind="Liquidate",
        ts=1714000000123,
        tx="abc",
        block=61234567,
        result={
            "renter": "TUser",
            "liquidator": "TLiq",
            "amount": "1000000",
            "resourceType": "1",
            "dirtyRent": "25",
            "totalAmount": BIG,
            "totalSecurityDeposit": "500",
            "rentIndex": "1000000000000000000",
        },
    )

    event = normalize(record)

    assert isinstance(event, Liquidate)
    assert event.kind == "Liquidate"
    assert event.user == "TUser"
    assert event.liquidator == "TLiq"
    assert event.amount == "1000000"
    assert event.dirty_rent == "25"
    assert event.total_amount == BIG
    assert event.total_security_deposit == "500"
    assert event.rent_index == "1000000000000000000"
    assert event.block_number == 61234567
    assert event.transaction_id == "abc"
    assert event.occurred_at == dt.datetime(2024, 4, 24, 23, 6, 40, 123000, tzinfo=dt.timezone.utc)


def test_rent_resource_uses_added_amounts_and_totals(record_factory):
    record = record_factory(
        kind="RentResource",
        result={
            "renter": "TUser",
            "receiver": "TRecv",
            "addedAmount": "10",
            "addedSecurityDeposit": "3",
            "amount": "110",
            "securityDeposit": "33",
            "resourceType": 0,
            "rentIndex": "7",
        },
    )

    event = normalize(record)

    assert isinstance(event, RentResource)
    assert event.receiver == "TRecv"
    assert event.amount == "10"
    assert event.security_deposit_added == "3"
    assert event.total_amount == "110"
    assert event.total_security_deposit == "33"
    assert event.resource_type == "0"


def test_return_resource_uses_subtracted_amounts(record_factory):
    record = record_factory(
        kind="ReturnResource",
        result={
            "user": "TUser",
            "receiver": "TRecv",
            "subedAmount": "4",
            "usageRental": "2",
            "subedSecurityDeposit": "1",
            "amount": "96",
            "securityDeposit": "32",
        },
    )

    event = normalize(record)

    assert isinstance(event, ReturnResource)
    assert event.user == "TUser"
    assert event.amount == "4"
    assert event.usage_rental == "2"
    assert event.security_deposit_subtracted == "1"
    assert event.total_amount == "96"
    assert event.total_security_deposit == "32"


def test_missing_optional_fields_default_to_zero_and_empty(record_factory):
    event = normalize(record_factory(kind="Liquidate", result={}))

    assert event.user == ""
    assert event.liquidator == ""
    assert event.amount == "0"
    assert event.rent_index == "0"


def test_hex_amounts_are_converted_to_decimal(record_factory):
    event = normalize(record_factory(kind="Liquidate", result={"amount": "0xff"}))
    assert event.amount == "255"


def test_unknown_kind_returns_none(record_factory, log_messages):
    assert normalize(record_factory(kind="Transfer")) is None
    assert any(
        m["level"].name == "DEBUG" and "Transfer" in m["message"] for m in log_messages
    )


@pytest.mark.parametrize("bad", ["12.5", "lots", 1.5, True, {"x": 1}])
def test_non_integer_amount_is_malformed(record_factory, bad):
    with pytest.raises(NormalizationSkipped) as exc:
        normalize(record_factory(kind="Liquidate", result={"amount": bad}))
    assert exc.value.event_kind == "Liquidate"


def test_batch_isolates_malformed_record(record_factory, log_messages):
    good = [record_factory(kind="Liquidate", ts=t, result={"amount": "1"}) for t in (1, 2, 3)]
    bad = record_factory(kind="RentResource", ts=4, result={"addedAmount": "oops"})

    events, skipped = normalize_batch([good[0], bad, good[1], good[2]])

    assert len(events) == 3
    assert skipped == 1
    assert [e.block_timestamp for e in events] == [1, 2, 3]
    assert any(
        m["level"].name == "INFO" and "Skipped malformed RentResource" in m["message"]
        for m in log_messages
    )


def test_batch_counts_unknown_kinds_as_skipped(record_factory):
    events, skipped = normalize_batch([record_factory(kind="Transfer"), record_factory(kind="Liquidate")])
    assert len(events) == 1
    assert skipped == 1


def test_occurred_at_keeps_millisecond_precision():
    assert occurred_at(0) == dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)
    assert occurred_at(1714000000001).microsecond == 1000


@pytest.mark.parametrize("bad", [-5, "-5", "1" * 5000, "0x" + "f" * 5000, "0xzz"])
def test_negative_and_oversized_amounts_are_malformed(record_factory, bad):
    with pytest.raises(NormalizationSkipped):
        normalize(record_factory(kind="Liquidate", result={"amount": bad}))


def test_oversized_int_amount_is_malformed(record_factory):
    with pytest.raises(NormalizationSkipped):
        normalize(record_factory(kind="Liquidate", result={"amount": 10 ** 5000}))


def test_batch_survives_oversized_amount(record_factory):
    good = [record_factory(kind="Liquidate", ts=t, result={"amount": "1"}) for t in (1, 2)]
    huge = record_factory(kind="Liquidate", ts=3, result={"amount": "1" * 5000})

    events, skipped = normalize_batch(good + [huge])

    assert [e.block_timestamp for e in events] == [1, 2]
    assert skipped == 1


def test_batch_isolates_unexpected_normalizer_errors(record_factory, log_messages):
    def flaky(record):
        if record.block_timestamp == 2:
            raise KeyError("renter")
        return normalize(record)

    records = [record_factory(kind="Liquidate", ts=t, tx=f"tx{t}") for t in (1, 2, 3)]
    events, skipped = normalize_batch(records, flaky)

    assert [e.block_timestamp for e in events] == [1, 3]
    assert skipped == 1
    errors = [m for m in log_messages if m["level"].name == "ERROR"]
    assert len(errors) == 1
    assert "Liquidate" in errors[0]["message"] and "tx2" in errors[0]["message"]
    assert errors[0]["exception"] is not None
