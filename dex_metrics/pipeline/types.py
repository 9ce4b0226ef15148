from decimal import Decimal
from typing import Any, NamedTuple, Optional, Sequence, Tuple, Union


class Token(NamedTuple):
    address: str
    name: str = ""
    symbol: str = ""
    decimals: Optional[int] = None
    total_supply: int = 0
    whitelist_pools: Tuple[str, ...] = ()


class Pool(NamedTuple):
    address: str
    token0: Token
    token1: Token
    fee_tier: int
    tick_spacing: int
    created_at_block_number: int
    created_at_timestamp: int
    transaction_id: str
    log_ordinal: int
    ignore_pool: bool = False


class Initialize(NamedTuple):
    pool_address: str
    ordinal: int
    sqrt_price: int
    tick: int


class PoolSqrtPrice(NamedTuple):
    pool_address: str
    ordinal: int
    sqrt_price: int
    tick: int


class PoolLiquidity(NamedTuple):
    pool_address: str
    ordinal: int
    liquidity: int


# ── event payloads (amounts are raw ints on a PoolLog, Decimals on an Event) ──
class Swap(NamedTuple):
    sender: str
    recipient: str
    origin: str
    amount0: Union[int, Decimal]
    amount1: Union[int, Decimal]
    sqrt_price: int
    liquidity: int
    tick: int


class Mint(NamedTuple):
    owner: str
    sender: str
    origin: str
    amount: int
    amount0: Union[int, Decimal]
    amount1: Union[int, Decimal]
    tick_lower: int
    tick_upper: int


class Burn(NamedTuple):
    owner: str
    origin: str
    amount: int
    amount0: Union[int, Decimal]
    amount1: Union[int, Decimal]
    tick_lower: int
    tick_upper: int


Payload = Union[Swap, Mint, Burn]


class PoolLog(NamedTuple):
    """A decoded pool log as handed over by the decoder, raw integer amounts."""
    pool_address: str
    log_ordinal: int
    log_index: int
    transaction_id: str
    payload: Payload


class Event(NamedTuple):
    log_ordinal: int
    log_index: int
    pool_address: str
    token0: str
    token1: str
    fee: int
    transaction_id: str
    timestamp: int
    payload: Payload

    @property
    def kind(self) -> str:
        return type(self.payload).__name__.lower()

    def signed_amounts(self) -> Tuple[Decimal, Decimal]:
        """Pool-side native deltas: burns remove liquidity, mints and swaps add it."""
        if isinstance(self.payload, Burn):
            return -self.payload.amount0, -self.payload.amount1
        return self.payload.amount0, self.payload.amount1


class EventAmount(NamedTuple):
    pool_address: str
    log_ordinal: int
    token0_addr: str
    amount0_value: Decimal
    token1_addr: str
    amount1_value: Decimal


class Tick(NamedTuple):
    pool_address: str
    idx: int
    price0: Decimal
    price1: Decimal


class BlockSegment(NamedTuple):
    number: int
    timestamp: int
    pools_created: Sequence[Pool] = ()
    initializes: Sequence[Initialize] = ()
    liquidity_changes: Sequence[PoolLiquidity] = ()
    logs: Sequence[PoolLog] = ()


class StoreDelta(NamedTuple):
    operation: str
    ordinal: int
    key: str
    old_value: Any
    new_value: Any
