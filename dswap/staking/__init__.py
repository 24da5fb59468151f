"""
DSWAP Staking

Dual-currency reward distribution for stakers of the pair token:
  - Reward accumulator (Q18 reward-per-unit counters, settled lazily)
  - RewardEngine (stake, withdraw, claim, reward pool funding)
"""

from .accumulator import (
    RewardAccumulatorState,
    RewardPools,
    StakerRecord,
    current_per_unit,
    owed,
    pending_per_unit,
)
from .engine import RewardEngine

__all__ = [
    "RewardAccumulatorState",
    "RewardPools",
    "StakerRecord",
    "current_per_unit",
    "owed",
    "pending_per_unit",
    "RewardEngine",
]
