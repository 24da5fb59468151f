"""
Constant-product pricing math.

Pure integer functions shared by trades, estimates and the CLI. The rounding
rules are part of the protocol: outputs always round down and required inputs
always round up, so the pool never pays out more than the curve allows and
every remainder stays in the reserves.
"""

from decimal import Decimal, ROUND_HALF_UP

from ..constants import BPS_DENOMINATOR, PRECISION, PRICE_SCALE
from ..exceptions import InsufficientFundsError, InvalidInputError

ZERO = Decimal("0")


def swap_output(input_amount: int, input_reserve: int, output_reserve: int) -> int:
    """
    Output of a constant-product swap.

    Formula: out = (in * output_reserve) / (input_reserve + in)

    Both sides are scaled by ``PRECISION`` before the single division; the
    scale cancels, so the result is the exact floor of the real quotient.
    """
    if input_amount < 0:
        raise InvalidInputError("Swap input cannot be negative")
    if input_reserve <= 0 or output_reserve <= 0:
        raise InsufficientFundsError("Both reserves must be nonzero to price a swap")

    scaled_input = input_amount * PRECISION
    numerator = scaled_input * output_reserve
    denominator = input_reserve * PRECISION + scaled_input
    return numerator // denominator


def swap_input(output_amount: int, input_reserve: int, output_reserve: int) -> int:
    """
    Smallest input for which ``swap_output`` yields at least *output_amount*.

    in = ceil(output_amount * input_reserve / (output_reserve - output_amount))
    """
    if output_amount <= 0:
        raise InvalidInputError("Requested output must be positive")
    if input_reserve <= 0 or output_reserve <= 0:
        raise InsufficientFundsError("Both reserves must be nonzero to price a swap")
    if output_amount >= output_reserve:
        raise InsufficientFundsError(
            f"Requested output {output_amount} exhausts reserve {output_reserve}"
        )

    numerator = output_amount * input_reserve
    denominator = output_reserve - output_amount
    return -(-numerator // denominator)


def compute_fee(amount: int, fee_bps: int) -> int:
    """fee = floor(amount * fee_bps / 10_000)"""
    if not (0 <= fee_bps < BPS_DENOMINATOR):
        raise InvalidInputError(f"fee_bps must be in [0, {BPS_DENOMINATOR}): {fee_bps}")
    return amount * fee_bps // BPS_DENOMINATOR


def gross_for_net(net_amount: int, fee_bps: int) -> int:
    """Smallest gross amount whose ``gross - compute_fee(gross)`` is at least *net_amount*."""
    if net_amount <= 0:
        raise InvalidInputError("Net amount must be positive")
    keep = BPS_DENOMINATOR - fee_bps
    gross = -(-net_amount * BPS_DENOMINATOR // keep)
    # floor() in compute_fee can leave one unit of slack; step down while still sufficient
    while gross > net_amount and (gross - 1) - compute_fee(gross - 1, fee_bps) >= net_amount:
        gross -= 1
    return gross


def spot_price(native_reserve: int, token_reserve: int) -> int:
    """Native currency per whole token, scaled by ``PRICE_SCALE``."""
    if token_reserve <= 0:
        raise InsufficientFundsError("Token reserve is empty")
    return native_reserve * PRICE_SCALE // token_reserve


def min_out_with_slippage(estimate: int, slippage_percent: int) -> int:
    """Minimum acceptable output for a quoted *estimate* and a tolerance in whole percent."""
    if not (0 <= slippage_percent <= 100):
        raise InvalidInputError(f"Slippage must be 0-100%, got {slippage_percent}")
    return estimate * (100 - slippage_percent) // 100


def price_impact(spot: int, amount_in: int, amount_out: int) -> Decimal:
    """
    Relative gap between the spot price and the execution price of a buy.

    Both prices are native per whole token (scaled). Returns a fraction,
    e.g. 0.01 = 1% impact.
    """
    if amount_out <= 0 or spot <= 0:
        return ZERO
    execution = Decimal(amount_in) * PRICE_SCALE / Decimal(amount_out)
    impact = (execution - Decimal(spot)) / Decimal(spot)
    return impact.quantize(Decimal("0.00000001"), rounding=ROUND_HALF_UP)
