# liqmonitor/connectors/trongrid.py
from typing import Any, Dict, List, Optional

import requests
from loguru import logger
from pydantic import ValidationError

from .base_events import BaseEventSource
from ..errors import SourceUnavailable
from ..schemas import RawEventRecord


class TronGridEventSource(BaseEventSource):
    """
    Event source backed by the TronGrid HTTP API:
    - GET  {endpoint}/v1/contracts/{address}/events  → page of contract events
    - POST {endpoint}/wallet/getnowblock             → startup connectivity check
    The endpoint may be given with or without the `/v1` suffix.
    Owns a single requests.Session reused across polls.
    """

    def __init__(
        self,
        endpoint: str,
        contract_address: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        limit: int = 200,
        session: Optional[requests.Session] = None,
    ):
        base = endpoint.rstrip("/")
        if base.endswith("/v1"):
            base = base[: -len("/v1")]
        self.base_url = base
        self.contract_address = contract_address
        self.timeout = timeout
        self.limit = limit

        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if api_key:
            self.session.headers.update({"TRON-PRO-API-KEY": api_key})

    @property
    def events_url(self) -> str:
        return f"{self.base_url}/v1/contracts/{self.contract_address}/events"

    def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise SourceUnavailable(f"[TronGrid] request to {url} failed: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise SourceUnavailable(f"[TronGrid] non-JSON body from {url}: {e}") from e

    def fetch_records(self) -> List[RawEventRecord]:
        body = self._get_json(self.events_url, {"limit": self.limit})

        if not isinstance(body, dict) or not body.get("success"):
            raise SourceUnavailable(f"[TronGrid] API request failed for {self.contract_address}")

        rows = body.get("data")
        if not isinstance(rows, list):
            raise SourceUnavailable(f"[TronGrid] unexpected `data` in response: {rows!r}")

        records: List[RawEventRecord] = []
        for row in rows:
            try:
                records.append(RawEventRecord.model_validate(row))
            except ValidationError as e:
                logger.warning(f"[TronGrid] Dropping unparsable event row: {e.errors(include_url=False)}")
        logger.debug(f"[TronGrid] {len(records)} event rows for {self.contract_address}")
        return records

    def get_current_block(self) -> int:
        """Latest block number, used once at startup to prove the source is reachable."""
        url = f"{self.base_url}/wallet/getnowblock"
        try:
            resp = self.session.post(url, timeout=self.timeout)
            resp.raise_for_status()
            block = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise SourceUnavailable(f"[TronGrid] cannot reach {url}: {e}") from e

        if not isinstance(block, dict):
            raise SourceUnavailable(f"[TronGrid] unexpected getnowblock response: {block!r}")
        header = block.get("block_header") or {}
        raw_data = header.get("raw_data") if isinstance(header, dict) else None
        number = raw_data.get("number") if isinstance(raw_data, dict) else None
        if number is None:
            raise SourceUnavailable("[TronGrid] no block number in getnowblock response")
        return int(number)

    def close(self):
        self.session.close()
