import pytest

from dex_metrics.pipeline.sequencer import OrdinalGuard, ordinal_of, sequence
from dex_metrics.pipeline.types import PoolLiquidity, PoolLog, Swap
from dex_metrics.utils.errors import OrdinalOrderError


def _swap_log(ordinal):
    return PoolLog("p", ordinal, 0, "tx", Swap("s", "r", "o", 1, -1, 1 << 96, 1, 0))


def test_ordinal_of_reads_either_field():
    assert ordinal_of(_swap_log(7)) == 7
    assert ordinal_of(PoolLiquidity("p", 9, 1)) == 9


def test_sequence_sorts_by_ordinal():
    logs = [_swap_log(3), _swap_log(1), _swap_log(2)]
    assert [log.log_ordinal for log in sequence(logs)] == [1, 2, 3]


def test_sequence_rejects_duplicate_ordinals():
    with pytest.raises(OrdinalOrderError, match="duplicate ordinal 2 in logs"):
        sequence([_swap_log(2), _swap_log(1), _swap_log(2)], "logs")


def test_guard_allows_equal_and_increasing_ordinals():
    guard = OrdinalGuard("prices")
    guard.check(1, "a")
    guard.check(1, "b")
    guard.check(4, "a")
    with pytest.raises(OrdinalOrderError):
        guard.check(3, "a")
    guard.reset()
    guard.check(0, "a")
