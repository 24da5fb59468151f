"""
DSWAP Exchange

Single-pair constant-product market maker.

Components:
  - Pricing math (integer constant-product curve, fees, slippage, price impact)
  - Reserve ledger (reserves, protected floor, fee accrual, trade totals)
  - PricingEngine (buy / sell / estimates and the fee drain into staking)
"""

from .pricing import (
    compute_fee,
    gross_for_net,
    min_out_with_slippage,
    price_impact,
    spot_price,
    swap_input,
    swap_output,
)
from .reserves import (
    FeeAccrual,
    ReservePair,
    TradeStats,
)
from .amm import (
    PricingEngine,
    RewardDestination,
    TradeResult,
    TradeSide,
)

__all__ = [
    # Pricing math
    "compute_fee",
    "gross_for_net",
    "min_out_with_slippage",
    "price_impact",
    "spot_price",
    "swap_input",
    "swap_output",
    # Reserves
    "FeeAccrual",
    "ReservePair",
    "TradeStats",
    # Engine
    "PricingEngine",
    "RewardDestination",
    "TradeResult",
    "TradeSide",
]
