"""
Reserve ledger of the AMM.

``ReservePair`` holds the two balances the curve prices against. The native
side starts at the protected floor ("basis value"), which is virtual: only
native currency above the floor was ever paid in by buyers, so sells may
never take the reserve down to it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..exceptions import InsufficientFundsError, InvalidInputError


@dataclass
class ReservePair:
    native_reserve: int
    token_reserve: int
    floor_value: int = field(default=0)

    def __post_init__(self) -> None:
        if self.native_reserve < 0 or self.token_reserve < 0 or self.floor_value < 0:
            raise InvalidInputError("Reserves and floor must be non-negative")

    @classmethod
    def initial(cls, circulating_supply: int, dev_allocation: int, floor_value: int) -> "ReservePair":
        """Reserves at construction: all non-dev tokens, native side at the floor."""
        if dev_allocation > circulating_supply:
            raise InvalidInputError("Dev allocation exceeds supply")
        return cls(
            native_reserve=floor_value,
            token_reserve=circulating_supply - dev_allocation,
            floor_value=floor_value,
        )

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "floor_value" and "floor_value" in self.__dict__:
            raise AttributeError("floor_value is immutable after construction")
        super().__setattr__(name, value)

    @property
    def native_above_floor(self) -> int:
        """Native currency actually backing the pool."""
        return self.native_reserve - self.floor_value

    def apply_buy(self, net_native_in: int, token_out: int) -> None:
        if token_out > self.token_reserve:
            raise InsufficientFundsError(
                f"Token output {token_out} exceeds reserve {self.token_reserve}"
            )
        self.native_reserve += net_native_in
        self.token_reserve -= token_out

    def apply_sell(self, native_out: int) -> None:
        if native_out > self.native_reserve:
            raise InsufficientFundsError(
                f"Native output {native_out} exceeds reserve {self.native_reserve}"
            )
        self.native_reserve -= native_out

    def as_tuple(self) -> Tuple[int, int]:
        return self.native_reserve, self.token_reserve

    def to_dict(self) -> Dict[str, int]:
        return {
            "native_reserve": self.native_reserve,
            "token_reserve": self.token_reserve,
            "floor_value": self.floor_value,
        }


@dataclass
class FeeAccrual:
    """Trading fees waiting for the next drain into the reward pools."""
    fee_in_token: int = 0
    fee_in_native: int = 0
    last_drain: Optional[int] = None  # None until the first drain

    def take(self) -> Tuple[int, int]:
        """Read and zero both counters."""
        token_fees, native_fees = self.fee_in_token, self.fee_in_native
        self.fee_in_token = 0
        self.fee_in_native = 0
        return token_fees, native_fees


@dataclass
class TradeStats:
    """Cumulative trade totals. Never reset, not even by fee drains."""
    total_native_in: int = 0
    total_native_out: int = 0
    total_native_fees: int = 0
    total_token_fees: int = 0
    total_tokens_out: int = 0
    total_tokens_burned: int = 0
    buy_count: int = 0
    sell_count: int = 0

    @property
    def trade_count(self) -> int:
        return self.buy_count + self.sell_count
