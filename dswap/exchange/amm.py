"""
DSWAP Constant-Product AMM

Single-pair market maker between the native settlement currency and the pair
token, with:
  - Virtual native reserve protected by a floor ("basis value")
  - 0.30% fee: native side on buys, token side on sells
  - Slippage protection (min output on every trade)
  - Reentrancy lock + all-or-nothing execution on every mutating call
  - Fee bridge: periodic drain of accrued fees into the staking reward pools

Every amount is an integer in the smallest unit.
"""

from __future__ import annotations

import copy
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..clock import Clock, system_clock
from ..constants import AMM_ADDRESS, FEE_BPS, FEE_DRAIN_COOLDOWN
from ..events import FeeAccrued, FeesDrained, ReservesUpdated, TradeExecuted
from ..exceptions import (
    ConfigurationError,
    CooldownError,
    InsufficientFundsError,
    InvalidInputError,
    ReserveFloorError,
    SlippageExceededError,
)
from ..logger import get_logger
from ..tokens import FungibleToken, NativeLedger
from ..transaction import ReentrancyGuard, atomic
from .pricing import (
    compute_fee,
    gross_for_net,
    price_impact,
    spot_price,
    swap_input,
    swap_output,
)
from .reserves import FeeAccrual, ReservePair, TradeStats

logger = get_logger(__name__)


class TradeSide(Enum):
    BUY = "buy"     # native in, tokens out
    SELL = "sell"   # tokens in, native out


class RewardDestination(Protocol):
    """
    Where drained fees go. Implemented by the staking reward engine.

    The destination takes part in the drain's atomic section, so it must
    support snapshot / restore like the ledgers.
    """

    address: str
    reward_token: FungibleToken

    def top_up_token_pool(self, sender: str, amount: int) -> None: ...
    def receive_native_funds(self, sender: str, amount: int) -> None: ...
    def snapshot(self) -> Any: ...
    def restore(self, snapshot: Any) -> None: ...


class TradeResult:
    """Outcome of a successful buy or sell."""

    __slots__ = ("side", "amount_in", "amount_out", "fee", "native_reserve", "token_reserve")

    def __init__(
        self,
        side: TradeSide,
        amount_in: int,
        amount_out: int,
        fee: int,
        native_reserve: int,
        token_reserve: int,
    ):
        self.side = side
        self.amount_in = amount_in
        self.amount_out = amount_out
        self.fee = fee
        self.native_reserve = native_reserve
        self.token_reserve = token_reserve

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.side.value,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "fee": self.fee,
            "native_reserve": self.native_reserve,
            "token_reserve": self.token_reserve,
        }

    def __repr__(self) -> str:
        return (
            f"TradeResult(side={self.side.value}, in={self.amount_in}, "
            f"out={self.amount_out}, fee={self.fee})"
        )


class PricingEngine:
    """
    Constant-product pricing engine for one (native, token) pair.

    Implements:
      - buy / sell with slippage protection
      - estimates consistent with the next real trade
      - spot price and price impact
      - fee accrual and the fee drain into a RewardDestination

    The engine's own account holds the token reserve plus token fees, and the
    native currency above the floor plus native fees.
    """

    def __init__(
        self,
        token: FungibleToken,
        native: NativeLedger,
        reserves: ReservePair,
        *,
        fee_bps: int = FEE_BPS,
        drain_cooldown: int = FEE_DRAIN_COOLDOWN,
        address: str = AMM_ADDRESS,
        clock: Optional[Clock] = None,
        reward_destination: Optional[RewardDestination] = None,
    ):
        if not (0 <= fee_bps < 10_000):
            raise InvalidInputError(f"fee_bps must be in [0, 10000): {fee_bps}")
        if drain_cooldown < 0:
            raise InvalidInputError("Drain cooldown cannot be negative")

        self.token = token
        self.native = native
        self.reserves = reserves
        self.fee_bps = fee_bps
        self.drain_cooldown = drain_cooldown
        self.address = address
        self._clock = clock or system_clock
        self._destination = reward_destination

        self.fees = FeeAccrual()
        self.stats = TradeStats()
        self._events: List[Any] = []
        self._guard = ReentrancyGuard(address)

    # -- Views --------------------------------------------------------------

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    @property
    def reward_destination(self) -> Optional[RewardDestination]:
        return self._destination

    @property
    def is_locked(self) -> bool:
        return self._guard.locked

    def get_reserves(self) -> Tuple[int, int]:
        """(native_reserve, token_reserve)"""
        return self.reserves.as_tuple()

    def current_price(self) -> int:
        """Native currency per whole token, scaled by 10**18."""
        return spot_price(self.reserves.native_reserve, self.reserves.token_reserve)

    def accumulated_fees(self) -> Tuple[int, int]:
        """(fee_in_token, fee_in_native) waiting for the next drain."""
        return self.fees.fee_in_token, self.fees.fee_in_native

    def native_balance(self) -> int:
        return self.native.balance_of(self.address)

    def next_drain_time(self) -> int:
        if self.fees.last_drain is None:
            return 0
        return self.fees.last_drain + self.drain_cooldown

    # -- Estimates ----------------------------------------------------------

    def estimate_out(self, amount_in: int, side: TradeSide = TradeSide.BUY) -> int:
        """
        Output the next trade of *amount_in* would receive with unchanged reserves.

        BUY: native in (fee deducted first) → tokens out.
        SELL: tokens in (priced on the gross amount) → native out.
        """
        if amount_in <= 0:
            raise InvalidInputError("Estimate amount must be positive")
        native_reserve, token_reserve = self.reserves.as_tuple()
        if side is TradeSide.BUY:
            net_in = amount_in - compute_fee(amount_in, self.fee_bps)
            return swap_output(net_in, native_reserve, token_reserve)
        if side is TradeSide.SELL:
            return swap_output(amount_in, token_reserve, native_reserve)
        raise InvalidInputError(f"Unknown trade side: {side!r}")

    def estimate_in(self, amount_out: int, side: TradeSide = TradeSide.BUY) -> int:
        """
        Smallest input whose trade yields at least *amount_out*.

        BUY: native needed (fee included) for *amount_out* tokens.
        SELL: tokens needed for *amount_out* native.
        """
        native_reserve, token_reserve = self.reserves.as_tuple()
        if side is TradeSide.BUY:
            net_in = swap_input(amount_out, native_reserve, token_reserve)
            return gross_for_net(net_in, self.fee_bps)
        if side is TradeSide.SELL:
            return swap_input(amount_out, token_reserve, native_reserve)
        raise InvalidInputError(f"Unknown trade side: {side!r}")

    def price_impact(self, native_in: int) -> Decimal:
        """
        Price impact of buying with *native_in* WITHOUT executing it.

        Returns:
            Impact as a fraction (e.g. 0.01 = 1% worse than spot)
        """
        tokens_out = self.estimate_out(native_in, TradeSide.BUY)
        return price_impact(self.current_price(), native_in, tokens_out)

    # -- Trades -------------------------------------------------------------

    def buy(self, caller: str, native_in: int, min_token_out: int = 0) -> TradeResult:
        """
        Buy tokens with *native_in* native currency attached to the call.

        Raises:
            InvalidInputError: zero input, or a trade too small to receive any token
            InsufficientFundsError: caller cannot pay, or the reserve cannot cover
            SlippageExceededError: output below *min_token_out*
            TransferFailureError: token delivery failed (whole trade reverted)
        """
        if native_in <= 0:
            raise InvalidInputError("Buy amount must be positive")
        if min_token_out < 0:
            raise InvalidInputError("Minimum output cannot be negative")
        if self.reserves.token_reserve <= 0:
            raise InsufficientFundsError("No tokens left in reserve")

        with atomic(self._guard, self, self.token, self.native):
            fee = compute_fee(native_in, self.fee_bps)
            net_in = native_in - fee
            token_out = swap_output(net_in, self.reserves.native_reserve, self.reserves.token_reserve)

            if token_out == 0:
                raise InvalidInputError(f"Trade too small: {native_in} buys no tokens")
            if token_out < min_token_out:
                raise SlippageExceededError(token_out, min_token_out)
            if token_out > self.reserves.token_reserve:
                raise InsufficientFundsError(
                    f"Token output {token_out} exceeds reserve {self.reserves.token_reserve}"
                )

            # Payment attached to the call
            self.native.transfer(caller, self.address, native_in)

            # Effects
            self.reserves.apply_buy(net_in, token_out)
            self.fees.fee_in_native += fee
            self.stats.total_native_in += native_in
            self.stats.total_native_fees += fee
            self.stats.total_tokens_out += token_out
            self.stats.buy_count += 1

            # Interaction
            self.token.transfer(self.address, caller, token_out)

            now = self._clock()
            self._emit_trade(caller, TradeSide.BUY, native_in, token_out, fee, "native", now)

        logger.info(
            f"Buy: {caller} paid {native_in} (fee {fee}) for {token_out} {self.token.symbol}"
        )
        return TradeResult(TradeSide.BUY, native_in, token_out, fee, *self.reserves.as_tuple())

    def sell(self, caller: str, token_in: int, min_native_out: int = 0) -> TradeResult:
        """
        Sell *token_in* tokens for native currency.

        The native output is priced on the gross token amount; the fee is then
        taken in tokens and the remainder is burned.

        Raises:
            InvalidInputError: zero input, or a trade too small to receive anything
            InsufficientFundsError: caller balance below *token_in*
            ReserveFloorError: reserve already at the floor, or the sale would reach it
            SlippageExceededError: output below *min_native_out*
            TransferFailureError: native payout failed (whole trade reverted)
        """
        if token_in <= 0:
            raise InvalidInputError("Sell amount must be positive")
        if min_native_out < 0:
            raise InvalidInputError("Minimum output cannot be negative")
        balance = self.token.balance_of(caller)
        if balance < token_in:
            raise InsufficientFundsError(f"{caller} holds {balance} < sell amount {token_in}")
        if self.reserves.native_reserve <= self.reserves.floor_value:
            raise ReserveFloorError("Native reserve is at its floor; sells are blocked")

        with atomic(self._guard, self, self.token, self.native):
            native_out = swap_output(token_in, self.reserves.token_reserve, self.reserves.native_reserve)
            fee = compute_fee(token_in, self.fee_bps)
            burn_amount = token_in - fee

            if native_out == 0:
                raise InvalidInputError(f"Trade too small: {token_in} tokens sell for nothing")
            if self.reserves.native_reserve - native_out <= self.reserves.floor_value:
                raise ReserveFloorError(
                    f"Sell of {token_in} would take native reserve to or below floor "
                    f"{self.reserves.floor_value}"
                )
            if native_out < min_native_out:
                raise SlippageExceededError(native_out, min_native_out)

            # Effects
            if burn_amount > 0:
                self.token.burn(self.address, caller, burn_amount)
            if fee > 0:
                self.token.transfer(caller, self.address, fee)
                self.fees.fee_in_token += fee
            self.reserves.apply_sell(native_out)
            self.stats.total_native_out += native_out
            self.stats.total_token_fees += fee
            self.stats.total_tokens_burned += burn_amount
            self.stats.sell_count += 1

            # Interaction
            self.native.transfer(self.address, caller, native_out)

            now = self._clock()
            self._emit_trade(caller, TradeSide.SELL, token_in, native_out, fee, "token", now)

        logger.info(
            f"Sell: {caller} sold {token_in} {self.token.symbol} (fee {fee}) for {native_out}"
        )
        return TradeResult(TradeSide.SELL, token_in, native_out, fee, *self.reserves.as_tuple())

    # -- Fee bridge ---------------------------------------------------------

    def set_reward_destination(self, destination: Optional[RewardDestination]) -> None:
        self._destination = destination
        if destination is not None:
            logger.info(f"Reward destination set: {destination.address}")

    def drain_fees(self) -> Tuple[int, int]:
        """
        Move accrued fees into the reward pools of the configured destination.

        Token fees go through ``top_up_token_pool``; native fees through
        ``receive_native_funds``. Zero amounts are skipped. If either transfer
        fails nothing changes, including the accrual and the cooldown.

        Raises:
            CooldownError: called before the drain cooldown has passed
            ConfigurationError: no destination, or it pays a reward token other
                than the pair token while token fees are pending

        Returns:
            (token_amount, native_amount) drained
        """
        now = self._clock()
        if self.fees.last_drain is not None and now < self.fees.last_drain + self.drain_cooldown:
            raise CooldownError(
                f"Cooldown period has not passed: next drain at {self.fees.last_drain + self.drain_cooldown}"
            )
        destination = self._destination
        if destination is None:
            raise ConfigurationError("No reward destination configured")
        # Token fees are held in the pair token; the pools must pay out the same asset
        if self.fees.fee_in_token > 0 and destination.reward_token is not self.token:
            raise ConfigurationError(
                f"Reward destination {destination.address} pays {destination.reward_token.symbol}, "
                f"but token fees are held in {self.token.symbol}"
            )

        with atomic(self._guard, self, self.token, self.native, destination):
            token_fees, native_fees = self.fees.take()
            self.fees.last_drain = now

            if token_fees > 0:
                self.token.approve(self.address, destination.address, token_fees)
                destination.top_up_token_pool(self.address, token_fees)
            if native_fees > 0:
                destination.receive_native_funds(self.address, native_fees)

            self._events.append(FeesDrained(destination.address, token_fees, native_fees, now))

        logger.info(
            f"Drain: {token_fees} {self.token.symbol} and {native_fees} native fees → {destination.address}"
        )
        return token_fees, native_fees

    # -- Internal -----------------------------------------------------------

    def _emit_trade(
        self,
        trader: str,
        side: TradeSide,
        amount_in: int,
        amount_out: int,
        fee: int,
        fee_currency: str,
        now: int,
    ) -> None:
        self._events.append(TradeExecuted(trader, side.value, amount_in, amount_out, fee, now))
        self._events.append(ReservesUpdated(*self.reserves.as_tuple(), now))
        if fee > 0:
            self._events.append(FeeAccrued(fee_currency, fee, now))

    # -- Snapshot / restore ---------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "reserves": copy.deepcopy(self.reserves),
            "fees": copy.deepcopy(self.fees),
            "stats": copy.deepcopy(self.stats),
            "event_count": len(self._events),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.reserves = snapshot["reserves"]
        self.fees = snapshot["fees"]
        self.stats = snapshot["stats"]
        del self._events[snapshot["event_count"]:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "token": self.token.symbol,
            "fee_bps": self.fee_bps,
            "reserves": self.reserves.to_dict(),
            "fees": {
                "token": self.fees.fee_in_token,
                "native": self.fees.fee_in_native,
                "last_drain": self.fees.last_drain,
            },
            "trades": self.stats.trade_count,
        }

    def __repr__(self) -> str:
        native_reserve, token_reserve = self.reserves.as_tuple()
        return (
            f"PricingEngine(native_reserve={native_reserve}, "
            f"token_reserve={token_reserve}, fee_bps={self.fee_bps})"
        )
