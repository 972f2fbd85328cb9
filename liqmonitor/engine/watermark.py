# liqmonitor/engine/watermark.py
from typing import List, Sequence, Set, Tuple

from ..schemas import RawEventRecord


class WatermarkTracker:
    """
    High-water mark over `block_timestamp` (ms).

    Default policy: a record is new only when its timestamp is strictly
    greater than the watermark. Records sharing the watermark's exact
    millisecond are treated as already delivered, so a second event mined in
    that same millisecond but returned by a later poll is missed.

    With `dedupe_same_timestamp=True` the tracker also remembers the identity
    (transaction_id, event_kind, event_index) of the records that set the
    watermark, and lets through records at exactly the watermark whose
    identity it has not seen. A watermark that came from configuration has no
    known identities, so records at exactly that value are still dropped.
    """

    def __init__(self, initial: int = 0, dedupe_same_timestamp: bool = False):
        if initial < 0:
            raise ValueError("initial watermark must be >= 0")
        self._value = initial
        self._dedupe_same_timestamp = dedupe_same_timestamp
        self._boundary: Set[Tuple] = set()

    @property
    def value(self) -> int:
        return self._value

    def _is_new(self, record: RawEventRecord) -> bool:
        if record.block_timestamp > self._value:
            return True
        if (
            self._dedupe_same_timestamp
            and self._boundary
            and record.block_timestamp == self._value
        ):
            return record.identity not in self._boundary
        return False

    def filter_new(self, records: Sequence[RawEventRecord]) -> List[RawEventRecord]:
        """Records not yet delivered, in input order. Does not mutate state."""
        return [r for r in records if self._is_new(r)]

    def advance(self, records: Sequence[RawEventRecord]):
        """Move the watermark to the batch maximum. Never moves backwards."""
        if not records:
            return
        top = max(r.block_timestamp for r in records)
        if top < self._value:
            return

        at_top = {r.identity for r in records if r.block_timestamp == top}
        if top > self._value:
            self._value = top
            self._boundary = at_top
        else:
            self._boundary |= at_top
