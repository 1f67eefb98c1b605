"""
Bridge fee calculation.

Fees are quoted in milli-percent (1/1000): a rate of 10 is 1.0%. Integer
division truncates, so amounts below ``1000 / rate`` pay no fee.
"""

from ..constants import FEE_DENOMINATOR, FEE_RATE_LIMIT
from ..exceptions import InvalidAmountError
from .types import FeeQuote


def is_valid_fee_rate(rate) -> bool:
    return isinstance(rate, int) and not isinstance(rate, bool) and 0 <= rate < FEE_RATE_LIMIT


def compute_fee(amount: int, fee_rate: int) -> FeeQuote:
    """
    Split a gross *amount* into ``(fee, net)``.

    Raises:
        InvalidAmountError: negative amount or rate outside ``[0, 100)``
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidAmountError(f"Cannot quote a fee for amount {amount!r}")
    if not is_valid_fee_rate(fee_rate):
        raise InvalidAmountError(f"Fee rate {fee_rate!r} must be in [0, {FEE_RATE_LIMIT})")

    fee = amount * fee_rate // FEE_DENOMINATOR
    return FeeQuote(fee=fee, net=amount - fee)
