"""
DSWAP Reward Distribution Engine

Stakers lock the pair token and earn two independent reward streams, one in
native currency and one in the reward token, pro rata to stake and time.

Every stake / withdraw / claim / top-up first settles the accumulator (and the
caller's record) up to the current time, then changes state, then moves
value. Each public mutating call holds the engine's reentrancy lock and is
reverted as a whole if anything fails.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

from ..clock import Clock, system_clock
from ..constants import CLAIM_COOLDOWN, REWARD_PERIOD, STAKING_ADDRESS
from ..events import RewardPaid, RewardPoolFunded, RewardSettled, StakeChanged
from ..exceptions import (
    CooldownError,
    GuardViolationError,
    InsufficientFundsError,
    InvalidInputError,
)
from ..logger import get_logger
from ..tokens import FungibleToken, NativeLedger
from ..transaction import ReentrancyGuard, atomic
from .accumulator import (
    RewardAccumulatorState,
    RewardPools,
    StakerRecord,
    current_per_unit,
    owed,
)

logger = get_logger(__name__)


class RewardEngine:
    """
    Staking reward engine with lazily-settled reward-per-unit accumulators.

    Responsibilities:
    - Custody of staked tokens
    - Native and token reward pools (funded by the AMM fee drain and deposits)
    - Settlement, attribution and payout of both reward streams
    """

    def __init__(
        self,
        staking_token: FungibleToken,
        reward_token: FungibleToken,
        native: NativeLedger,
        *,
        claim_cooldown: int = CLAIM_COOLDOWN,
        reward_period: int = REWARD_PERIOD,
        address: str = STAKING_ADDRESS,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            staking_token: Token stakers lock
            reward_token: Token paid out as the token reward stream
            native: Native currency ledger
            claim_cooldown: Seconds that must pass between two claims of one staker
            reward_period: Seconds over which the current pool is promised to the stake
            address: Account holding staked tokens and both pools
            clock: Time source (integer seconds)
        """
        if claim_cooldown < 0:
            raise InvalidInputError("Claim cooldown cannot be negative")
        if reward_period <= 0:
            raise InvalidInputError("Reward period must be positive")

        self.staking_token = staking_token
        self.reward_token = reward_token
        self.native = native
        self.claim_cooldown = claim_cooldown
        self.reward_period = reward_period
        self.address = address
        self._clock = clock or system_clock

        self.accumulator = RewardAccumulatorState(last_update=self._clock())
        self.pools = RewardPools()
        self._stakes: Dict[str, StakerRecord] = {}
        self._events: List[Any] = []
        self._guard = ReentrancyGuard(address)

    # =========================================================================
    # VIEWS
    # =========================================================================

    @property
    def total_staked(self) -> int:
        return self.accumulator.total_staked

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    @property
    def stakers(self) -> List[str]:
        return list(self._stakes.keys())

    @property
    def is_locked(self) -> bool:
        return self._guard.locked

    def stake_of(self, staker: str) -> Optional[StakerRecord]:
        """Copy of the staker's record, or None if they never staked."""
        record = self._stakes.get(staker)
        return copy.copy(record) if record is not None else None

    def get_staked_amount(self, staker: str) -> int:
        record = self._stakes.get(staker)
        return record.amount if record is not None else 0

    def get_contract_balance(self) -> int:
        """Native currency held by the engine."""
        return self.native.balance_of(self.address)

    def reward_per_unit(self) -> Tuple[int, int]:
        """(native, token) counters including accrual up to now."""
        return current_per_unit(self.accumulator, self.pools, self._clock(), self.reward_period)

    def earned_native(self, staker: str) -> int:
        record = self._stakes.get(staker)
        if record is None:
            return 0
        native_per_unit, _ = self.reward_per_unit()
        return owed(
            record.amount, native_per_unit,
            record.native_reward_per_unit_paid, record.accrued_native_reward,
        )

    def earned_token(self, staker: str) -> int:
        record = self._stakes.get(staker)
        if record is None:
            return 0
        _, token_per_unit = self.reward_per_unit()
        return owed(
            record.amount, token_per_unit,
            record.token_reward_per_unit_paid, record.accrued_token_reward,
        )

    def next_claim_time(self, staker: str) -> int:
        record = self._stakes.get(staker)
        if record is None or record.last_claim_timestamp == 0:
            return 0
        return record.last_claim_timestamp + self.claim_cooldown + 1

    # =========================================================================
    # SETTLEMENT
    # =========================================================================

    def settle(self, staker: Optional[str] = None) -> None:
        """
        Bring the accumulators (and *staker*'s record, if given) up to now.

        Calling it twice in the same instant changes nothing.
        """
        with atomic(self._guard, self):
            self._settle(staker)

    def _settle(self, staker: Optional[str]) -> None:
        now = self._clock()
        native_per_unit, token_per_unit = current_per_unit(
            self.accumulator, self.pools, now, self.reward_period
        )
        self.accumulator.native_reward_per_unit = native_per_unit
        self.accumulator.token_reward_per_unit = token_per_unit
        self.accumulator.last_update = now

        if staker is None:
            return
        record = self._stakes.get(staker)
        if record is None:
            return

        record.accrued_native_reward = owed(
            record.amount, native_per_unit,
            record.native_reward_per_unit_paid, record.accrued_native_reward,
        )
        record.accrued_token_reward = owed(
            record.amount, token_per_unit,
            record.token_reward_per_unit_paid, record.accrued_token_reward,
        )
        record.native_reward_per_unit_paid = native_per_unit
        record.token_reward_per_unit_paid = token_per_unit

        self._events.append(RewardSettled(
            staker,
            record.accrued_native_reward,
            record.accrued_token_reward,
            native_per_unit,
            token_per_unit,
            now,
        ))

    # =========================================================================
    # STAKE / WITHDRAW / CLAIM
    # =========================================================================

    def stake(self, caller: str, amount: int) -> StakerRecord:
        """
        Lock *amount* staking tokens. The caller must have approved the engine.

        Raises:
            InvalidInputError: amount not positive
            InsufficientFundsError: caller balance or allowance too low
        """
        if amount <= 0:
            raise InvalidInputError("Cannot stake 0")
        balance = self.staking_token.balance_of(caller)
        if balance < amount:
            raise InsufficientFundsError(f"{caller} balance {balance} < stake amount {amount}")

        with atomic(self._guard, self, self.staking_token, self.reward_token):
            now = self._clock()
            record = self._stakes.get(caller)
            if record is None:
                record = StakerRecord()
                self._stakes[caller] = record
            self._settle(caller)

            self.accumulator.total_staked += amount
            record.amount += amount

            self.staking_token.transfer_from(self.address, caller, self.address, amount)
            self._events.append(StakeChanged(caller, amount, record.amount, self.total_staked, now))

        logger.info(f"Stake: {caller} staked {amount}, total {self.total_staked}")
        return copy.copy(record)

    def withdraw(self, caller: str, amount: int) -> StakerRecord:
        """
        Return *amount* staked tokens to the caller. Accrued rewards stay claimable.

        Raises:
            InvalidInputError: amount not positive
            InsufficientFundsError: amount above the caller's stake
        """
        if amount <= 0:
            raise InvalidInputError("Cannot withdraw 0")
        staked = self.get_staked_amount(caller)
        if amount > staked:
            raise InsufficientFundsError(f"{caller} staked {staked} < withdraw amount {amount}")

        with atomic(self._guard, self, self.staking_token, self.reward_token):
            now = self._clock()
            self._settle(caller)
            record = self._stakes[caller]

            self.accumulator.total_staked -= amount
            record.amount -= amount

            self.staking_token.transfer(self.address, caller, amount)
            self._events.append(StakeChanged(caller, -amount, record.amount, self.total_staked, now))

        logger.info(f"Withdraw: {caller} withdrew {amount}, total {self.total_staked}")
        return copy.copy(record)

    def claim(self, caller: str) -> Tuple[int, int]:
        """
        Pay out the caller's accrued native and token rewards.

        Returns:
            (native_amount, token_amount) paid

        Raises:
            CooldownError: less than ``claim_cooldown`` since the caller's last claim
            InvalidInputError: nothing to claim
            InsufficientFundsError: engine cannot cover the full payout
            TransferFailureError: a payout transfer failed (claim reverted)
        """
        now = self._clock()
        record = self._stakes.get(caller)
        last_claim = record.last_claim_timestamp if record is not None else 0
        if now - last_claim <= self.claim_cooldown:
            raise CooldownError(
                f"Cooldown period has not passed: next claim after {last_claim + self.claim_cooldown}"
            )

        with atomic(self._guard, self, self.reward_token, self.native):
            self._settle(caller)
            record = self._stakes.get(caller)
            native_reward = record.accrued_native_reward if record is not None else 0
            token_reward = record.accrued_token_reward if record is not None else 0

            if native_reward == 0 and token_reward == 0:
                raise InvalidInputError("No rewards to claim")
            available_native = self.native.balance_of(self.address)
            if available_native < native_reward:
                raise InsufficientFundsError(
                    f"Insufficient native balance for reward: {available_native} < {native_reward}"
                )
            if self.pools.token_reward_pool < token_reward:
                raise InsufficientFundsError(
                    f"Insufficient token reward pool: {self.pools.token_reward_pool} < {token_reward}"
                )

            # Effects before transfers
            record.accrued_native_reward = 0
            record.accrued_token_reward = 0
            record.last_claim_timestamp = now
            self.pools.native_reward_pool -= min(native_reward, self.pools.native_reward_pool)
            self.pools.token_reward_pool -= token_reward

            if native_reward > 0:
                self.native.transfer(self.address, caller, native_reward)
            if token_reward > 0:
                self.reward_token.transfer(self.address, caller, token_reward)

            self._events.append(RewardPaid(caller, native_reward, token_reward, now))

        logger.info(f"Claim: {caller} received {native_reward} native and {token_reward} {self.reward_token.symbol}")
        return native_reward, token_reward

    # =========================================================================
    # FUNDING
    # =========================================================================

    def top_up_token_pool(self, sender: str, amount: int) -> None:
        """
        Add *amount* reward tokens to the token pool. The sender must have
        approved the engine; the AMM fee drain does so before calling.
        """
        if amount <= 0:
            raise InvalidInputError("Top-up amount must be positive")

        with atomic(self._guard, self, self.reward_token):
            now = self._clock()
            self._settle(None)
            self.reward_token.transfer_from(self.address, sender, self.address, amount)
            self.pools.token_reward_pool += amount
            self._events.append(RewardPoolFunded(sender, "token", amount, now))

        logger.info(f"TopUp: {sender} added {amount} {self.reward_token.symbol} to the reward pool")

    def receive_native_funds(self, sender: str, amount: int) -> None:
        """Deposit *amount* native currency from *sender* into the native reward pool."""
        if amount <= 0:
            raise InvalidInputError("Deposit amount must be positive")

        with atomic(self._guard, self, self.native):
            now = self._clock()
            self._settle(None)
            self.native.transfer(sender, self.address, amount)
            self.pools.native_reward_pool += amount
            self._events.append(RewardPoolFunded(sender, "native", amount, now))

        logger.info(f"Deposit: {sender} added {amount} native to the reward pool")

    # =========================================================================
    # ADMIN
    # =========================================================================

    def set_staking_token(self, token: FungibleToken) -> None:
        """Switch the staked asset. Only allowed while nothing is staked."""
        if self.total_staked > 0:
            raise GuardViolationError("Cannot change staking token while tokens are staked")

        with atomic(self._guard, self):
            self._settle(None)
            self.staking_token = token
            self.pools.token_reward_pool = self._custodied_reward_tokens()

        logger.info(f"Staking token set to {token.symbol}")

    def set_reward_token(self, token: FungibleToken) -> None:
        """Switch the reward asset; the token pool is re-read from custody."""
        with atomic(self._guard, self):
            self._settle(None)
            self.reward_token = token
            self.pools.token_reward_pool = self._custodied_reward_tokens()

        logger.info(
            f"Reward token set to {token.symbol}, token pool {self.pools.token_reward_pool}"
        )

    def _custodied_reward_tokens(self) -> int:
        held = self.reward_token.balance_of(self.address)
        if self.reward_token is self.staking_token:
            held -= self.total_staked
        return max(held, 0)

    # =========================================================================
    # SNAPSHOT / RESTORE
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "accumulator": copy.deepcopy(self.accumulator),
            "pools": copy.deepcopy(self.pools),
            "stakes": copy.deepcopy(self._stakes),
            "staking_token": self.staking_token,
            "reward_token": self.reward_token,
            "event_count": len(self._events),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.accumulator = snapshot["accumulator"]
        self.pools = snapshot["pools"]
        self._stakes = snapshot["stakes"]
        self.staking_token = snapshot["staking_token"]
        self.reward_token = snapshot["reward_token"]
        del self._events[snapshot["event_count"]:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "staking_token": self.staking_token.symbol,
            "reward_token": self.reward_token.symbol,
            "total_staked": self.total_staked,
            "native_reward_pool": self.pools.native_reward_pool,
            "token_reward_pool": self.pools.token_reward_pool,
            "native_reward_per_unit": self.accumulator.native_reward_per_unit,
            "token_reward_per_unit": self.accumulator.token_reward_per_unit,
            "last_update": self.accumulator.last_update,
            "stakers": len(self._stakes),
        }

    def __repr__(self) -> str:
        return (
            f"RewardEngine(total_staked={self.total_staked}, "
            f"native_pool={self.pools.native_reward_pool}, "
            f"token_pool={self.pools.token_reward_pool})"
        )
