# liqmonitor/connectors/base_events.py
from abc import ABC, abstractmethod
from typing import List

from ..schemas import RawEventRecord

class BaseEventSource(ABC):
    contract_address: str

    @abstractmethod
    def fetch_records(self) -> List[RawEventRecord]:
        """
        One query against the event source for the monitored contract.
        - returns the page of raw records (possibly empty)
        - raises SourceUnavailable when the page could not be fetched
        No retry here, the poller simply tries again next cycle.
        """
        ...
