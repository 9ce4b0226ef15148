"""
Ordinal-versioned key/value stores.

Every key keeps a short history of ``(ordinal, value)`` pairs for the block
being processed, so readers can ask for the value *as of* an ordinal and never
see a write from later in the block. Each mutation is also recorded as a
``StoreDelta`` (old value, new value) that downstream steps consume.

At the end of a block the history collapses to the last value per key and the
ordinals start over, matching per-block log ordinals.
"""
import logging
from bisect import bisect_right
from typing import Any, Dict, List, Optional

from dex_metrics.pipeline.sequencer import OrdinalGuard
from dex_metrics.pipeline.types import StoreDelta

log = logging.getLogger(__name__)

# Ordinal given to values carried over from previous blocks.
CARRIED_ORDINAL = -1


class BaseStore:
    operation = "set"

    def __init__(self, name: str):
        self.name = name
        self._ordinals: Dict[str, List[int]] = {}
        self._values: Dict[str, List[Any]] = {}
        self._deltas: List[StoreDelta] = []
        self._guard = OrdinalGuard(name)

    def _write(self, ordinal: int, key: str, value: Any) -> None:
        self._guard.check(ordinal, key)
        old_value = self.get_last(key)
        self._ordinals.setdefault(key, []).append(ordinal)
        self._values.setdefault(key, []).append(value)
        self._deltas.append(StoreDelta(self.operation, ordinal, key, old_value, value))

    def get_at(self, ordinal: int, key: str) -> Optional[Any]:
        """Value of ``key`` at the largest ordinal <= ``ordinal``, or None."""
        ordinals = self._ordinals.get(key)
        if not ordinals:
            return None
        idx = bisect_right(ordinals, ordinal)
        if idx == 0:
            return None
        return self._values[key][idx - 1]

    def get_last(self, key: str) -> Optional[Any]:
        values = self._values.get(key)
        if not values:
            return None
        return values[-1]

    def deltas(self) -> List[StoreDelta]:
        return list(self._deltas)

    def snapshot(self) -> Dict[str, Any]:
        return {key: values[-1] for key, values in sorted(self._values.items()) if values}

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._ordinals = {key: [CARRIED_ORDINAL] for key in snapshot}
        self._values = {key: [value] for key, value in snapshot.items()}
        self._deltas = []
        self._guard.reset()

    def close_block(self) -> None:
        self.restore(self.snapshot())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} keys={len(self._values)}>"


class StoreSet(BaseStore):
    """Last write wins."""
    operation = "set"

    def set(self, ordinal: int, key: str, value: Any) -> None:
        self._write(ordinal, key, value)


class StoreAdd(BaseStore):
    """Accumulator: every write adds to the current value (int or Decimal)."""
    operation = "add"

    def add(self, ordinal: int, key: str, value: Any) -> None:
        current = self.get_last(key)
        self._write(ordinal, key, value if current is None else current + value)


class StoreAppend(BaseStore):
    """Append-only tuple per key."""
    operation = "append"

    def append(self, ordinal: int, key: str, item: Any) -> None:
        current = self.get_last(key) or ()
        self._write(ordinal, key, tuple(current) + (item,))
