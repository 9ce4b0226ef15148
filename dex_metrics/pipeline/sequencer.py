import logging
from typing import Iterable, List, Optional, TypeVar

from dex_metrics.utils.errors import OrdinalOrderError

log = logging.getLogger(__name__)

T = TypeVar("T")


def ordinal_of(item) -> int:
    """Records carry either ``log_ordinal`` (events, pools) or ``ordinal`` (snapshots)."""
    ordinal = getattr(item, "log_ordinal", None)
    if ordinal is None:
        ordinal = getattr(item, "ordinal")
    return ordinal


def sequence(items: Iterable[T], stream: str = "stream") -> List[T]:
    """
    Return ``items`` in increasing ordinal order.

    Two records of the same stream may never share an ordinal: the ordinal is
    the only tie breaker downstream, so a duplicate is fatal.
    """
    ordered = sorted(items, key=ordinal_of)
    for previous, current in zip(ordered, ordered[1:]):
        if ordinal_of(previous) == ordinal_of(current):
            raise OrdinalOrderError(
                f"duplicate ordinal {ordinal_of(current)} in {stream}"
            )
    return ordered


class OrdinalGuard:
    """Rejects writes that go back in time within one block."""

    def __init__(self, name: str):
        self.name = name
        self.last: Optional[int] = None

    def check(self, ordinal: int, key: str) -> None:
        if self.last is not None and ordinal < self.last:
            raise OrdinalOrderError(
                f"[{self.name}] write to {key!r} at ordinal {ordinal} after ordinal {self.last}"
            )
        self.last = ordinal

    def reset(self) -> None:
        self.last = None
