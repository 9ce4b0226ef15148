from decimal import Decimal, getcontext
from typing import Union

from dex_metrics.pipeline.config.settings import DECIMAL_PRECISION

getcontext().prec = DECIMAL_PRECISION  # High precision for price math

ZERO = Decimal(0)
ONE = Decimal(1)

Numeric = Union[Decimal, int, str, bytes]


def to_decimal(value: Numeric) -> Decimal:
    """Coerce store payloads (Decimal, int, str or utf-8 bytes) into a Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str) and not value:
        return ZERO
    return Decimal(value)


def safe_div(amount0: Decimal, amount1: Decimal) -> Decimal:
    """Return amount0 / amount1, or 0 when the denominator is 0."""
    if amount1 == 0:
        return ZERO
    return amount0 / amount1


def exponent_to_decimal(decimals: int) -> Decimal:
    return Decimal(10) ** decimals


def convert_token_to_decimal(amount: int, decimals: int) -> Decimal:
    """Scale a raw on-chain integer amount by the token's decimals."""
    if decimals == 0:
        return Decimal(amount)
    return Decimal(amount) / exponent_to_decimal(decimals)


def big_decimal_exponated(value: Decimal, power: int) -> Decimal:
    if power == 0:
        return ONE
    return value ** power
