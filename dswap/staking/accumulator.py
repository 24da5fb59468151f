"""
Reward accumulator state.

Two reward-per-unit counters (native currency and token) in Q18 fixed point.
A staker's owed reward is ``amount * (current - last_seen) / SCALE`` plus
whatever was already accrued, so rewards are attributed lazily: nothing
iterates over stakers.

Accrual rate (per counter):

    delta = pool * elapsed * SCALE / (total_staked * reward_period)

i.e. the *current* pool balance is promised once per ``reward_period`` to the
whole stake. The rate is recomputed from the live pool at every settlement,
so the sum of promised rewards is not bounded by the pool; claims check
solvency before paying.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..constants import REWARD_SCALE


@dataclass
class RewardAccumulatorState:
    total_staked: int = 0
    native_reward_per_unit: int = 0
    token_reward_per_unit: int = 0
    last_update: int = 0


@dataclass
class RewardPools:
    native_reward_pool: int = 0
    token_reward_pool: int = 0


@dataclass
class StakerRecord:
    amount: int = 0
    native_reward_per_unit_paid: int = 0
    token_reward_per_unit_paid: int = 0
    accrued_native_reward: int = 0
    accrued_token_reward: int = 0
    last_claim_timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "native_reward_per_unit_paid": self.native_reward_per_unit_paid,
            "token_reward_per_unit_paid": self.token_reward_per_unit_paid,
            "accrued_native_reward": self.accrued_native_reward,
            "accrued_token_reward": self.accrued_token_reward,
            "last_claim_timestamp": self.last_claim_timestamp,
        }


def pending_per_unit(pool: int, elapsed: int, total_staked: int, reward_period: int) -> int:
    """Counter increase for *elapsed* seconds. Zero when nothing is staked."""
    if total_staked <= 0 or elapsed <= 0 or pool <= 0:
        return 0
    return pool * elapsed * REWARD_SCALE // (total_staked * reward_period)


def current_per_unit(
    state: RewardAccumulatorState,
    pools: RewardPools,
    now: int,
    reward_period: int,
) -> Tuple[int, int]:
    """(native, token) counters as they would be after settling at *now*."""
    elapsed = now - state.last_update
    native = state.native_reward_per_unit + pending_per_unit(
        pools.native_reward_pool, elapsed, state.total_staked, reward_period
    )
    token = state.token_reward_per_unit + pending_per_unit(
        pools.token_reward_pool, elapsed, state.total_staked, reward_period
    )
    return native, token


def owed(amount: int, per_unit: int, per_unit_paid: int, accrued: int) -> int:
    return amount * (per_unit - per_unit_paid) // REWARD_SCALE + accrued
