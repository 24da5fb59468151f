"""
Engine events.

Events are for observability only: they are appended to the emitting engine's
log after the state change they describe, and are discarded together with
that change when the operation reverts.
"""

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Dict


@dataclass(frozen=True)
class Event:
    name: ClassVar[str] = "Event"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event"] = self.name
        return data


@dataclass(frozen=True)
class TradeExecuted(Event):
    """Emitted on every buy or sell."""
    name: ClassVar[str] = "TradeExecuted"
    trader: str
    side: str
    amount_in: int
    amount_out: int
    fee: int
    timestamp: int


@dataclass(frozen=True)
class ReservesUpdated(Event):
    name: ClassVar[str] = "ReservesUpdated"
    native_reserve: int
    token_reserve: int
    timestamp: int


@dataclass(frozen=True)
class FeeAccrued(Event):
    """Fee taken by a trade. ``currency`` is "native" for buys and "token" for sells."""
    name: ClassVar[str] = "FeeAccrued"
    currency: str
    amount: int
    timestamp: int


@dataclass(frozen=True)
class FeesDrained(Event):
    name: ClassVar[str] = "FeesDrained"
    destination: str
    token_amount: int
    native_amount: int
    timestamp: int


@dataclass(frozen=True)
class StakeChanged(Event):
    """``delta`` is positive for stakes and negative for withdrawals."""
    name: ClassVar[str] = "StakeChanged"
    staker: str
    delta: int
    new_amount: int
    total_staked: int
    timestamp: int


@dataclass(frozen=True)
class RewardSettled(Event):
    name: ClassVar[str] = "RewardSettled"
    staker: str
    accrued_native: int
    accrued_token: int
    native_reward_per_unit: int
    token_reward_per_unit: int
    timestamp: int


@dataclass(frozen=True)
class RewardPaid(Event):
    name: ClassVar[str] = "RewardPaid"
    staker: str
    native_amount: int
    token_amount: int
    timestamp: int


@dataclass(frozen=True)
class RewardPoolFunded(Event):
    """A top-up of the native or token reward pool."""
    name: ClassVar[str] = "RewardPoolFunded"
    sender: str
    currency: str
    amount: int
    timestamp: int
