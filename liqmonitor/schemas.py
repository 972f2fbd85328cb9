# liqmonitor/schemas.py
import datetime as dt
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

RENT_RESOURCE = "RentResource"
RETURN_RESOURCE = "ReturnResource"
LIQUIDATE = "Liquidate"

EVENT_KINDS = (RENT_RESOURCE, RETURN_RESOURCE, LIQUIDATE)


class RawEventRecord(BaseModel):
    """
    One row of `GET /v1/contracts/{address}/events`:
    {
      "event_name": "Liquidate",
      "block_number": 61234567,
      "block_timestamp": 1714000000000,
      "transaction_id": "ab12...",
      "event_index": 0,
      "result": {"renter": "T...", "amount": "1000000", ...}
    }
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    event_kind: str = Field(alias="event_name")
    block_number: int
    block_timestamp: int = Field(ge=0)
    transaction_id: str
    result_fields: Dict[str, Any] = Field(default_factory=dict, alias="result")
    event_index: Optional[int] = None

    @property
    def identity(self):
        return (self.transaction_id, self.event_kind, self.event_index)


class _DomainEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str = ""
    amount: str = "0"
    resource_type: str = "0"
    total_amount: str = "0"
    total_security_deposit: str = "0"
    rent_index: str = "0"

    block_number: int
    block_timestamp: int
    transaction_id: str
    occurred_at: dt.datetime


class RentResource(_DomainEventBase):
    kind: Literal["RentResource"] = RENT_RESOURCE
    receiver: str = ""
    security_deposit_added: str = "0"


class ReturnResource(_DomainEventBase):
    kind: Literal["ReturnResource"] = RETURN_RESOURCE
    receiver: str = ""
    usage_rental: str = "0"
    security_deposit_subtracted: str = "0"


class Liquidate(_DomainEventBase):
    kind: Literal["Liquidate"] = LIQUIDATE
    liquidator: str = ""
    dirty_rent: str = "0"


DomainEvent = Annotated[
    Union[RentResource, ReturnResource, Liquidate],
    Field(discriminator="kind"),
]
