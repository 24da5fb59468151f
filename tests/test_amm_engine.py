"""
Test suite for the DSWAP pricing engine.

Covers:
  - Buys and sells against a deployed pair
  - Estimates matching execution
  - Reserve floor guard and slippage bounds
  - Conservation of native currency and monotonic pricing
  - Reentrancy and failing-recipient rollback
  - Fee drain into the staking pools (cooldown, all-or-nothing)
"""

import pytest

from dswap.clock import ManualClock
from dswap.constants import AMM_ADDRESS, STAKING_ADDRESS, TOKEN_UNIT
from dswap.deploy import deploy_pair
from dswap.events import FeeAccrued, FeesDrained, ReservesUpdated, TradeExecuted
from dswap.exceptions import (
    ConfigurationError,
    CooldownError,
    GuardViolationError,
    InsufficientFundsError,
    InvalidInputError,
    ReentrancyError,
    ReserveFloorError,
    SlippageExceededError,
    TransferFailureError,
)
from dswap.exchange import PricingEngine, ReservePair, TradeSide, compute_fee, swap_output
from dswap.tokens import FungibleToken, NativeLedger

U = TOKEN_UNIT

DEV = "dev"
ALICE = "alice"
BOB = "bob"
CAROL = "carol"


def _market(**kwargs):
    clock = ManualClock()
    d = deploy_pair(DEV, clock=clock, **kwargs)
    d.native.credit(ALICE, 1_000 * U)
    d.native.credit(BOB, 1_000 * U)
    return d, clock


def _state(d):
    """Everything a reverted call must leave untouched."""
    return (
        d.amm.get_reserves(),
        d.amm.accumulated_fees(),
        d.amm.fees.last_drain,
        d.token.total_supply,
        {a: d.token.balance_of(a) for a in (DEV, ALICE, BOB, AMM_ADDRESS, STAKING_ADDRESS)},
        {a: d.native.balance_of(a) for a in (DEV, ALICE, BOB, AMM_ADDRESS, STAKING_ADDRESS)},
        len(d.amm.events),
        d.staking.pools.native_reward_pool,
        d.staking.pools.token_reward_pool,
    )


class TestDeployment:

    def test_initial_reserves(self):
        d, _ = _market()
        assert d.amm.get_reserves() == (100 * U, 900_000 * U)
        assert d.amm.reserves.floor_value == 100 * U
        assert d.token.balance_of(DEV) == 100_000 * U
        assert d.token.balance_of(AMM_ADDRESS) == 900_000 * U
        assert d.token.total_supply == 1_000_000 * U
        assert d.amm.native_balance() == 0
        assert d.amm.reward_destination is d.staking

    def test_floor_is_immutable(self):
        d, _ = _market()
        with pytest.raises(AttributeError):
            d.amm.reserves.floor_value = 0

    def test_bad_parameters(self):
        with pytest.raises(InvalidInputError):
            deploy_pair(DEV, dev_supply_percent=100)
        with pytest.raises(InvalidInputError):
            deploy_pair(DEV, floor_value=0)


class TestBuy:

    def test_reference_buy(self):
        d, clock = _market()
        net = U - U * 30 // 10_000
        expected = (net * 900_000 * U) // (100 * U + net)

        result = d.amm.buy(ALICE, U)

        assert result.side is TradeSide.BUY
        assert result.amount_out == expected
        assert result.fee == 3 * 10 ** 15
        assert d.amm.get_reserves() == (100 * U + net, 900_000 * U - expected)
        assert d.token.balance_of(ALICE) == expected
        assert d.native.balance_of(ALICE) == 999 * U
        assert d.amm.native_balance() == U
        assert d.amm.accumulated_fees() == (0, 3 * 10 ** 15)

        trade, reserves, fee = d.amm.events[-3:]
        assert isinstance(trade, TradeExecuted) and trade.amount_out == expected
        assert isinstance(reserves, ReservesUpdated) and reserves.token_reserve == 900_000 * U - expected
        assert isinstance(fee, FeeAccrued) and fee.currency == "native"
        assert trade.timestamp == clock.now
        assert trade.to_dict()["event"] == "TradeExecuted"
        # token ledger events share the engine clock
        assert d.token.events[-1].timestamp == trade.timestamp

    def test_estimate_matches_execution(self):
        d, _ = _market()
        d.amm.buy(BOB, 7 * U)
        quoted = d.amm.estimate_out(3 * U, TradeSide.BUY)
        assert d.amm.buy(ALICE, 3 * U).amount_out == quoted

    def test_estimate_in(self):
        d, _ = _market()
        wanted = 1_000 * U
        needed = d.amm.estimate_in(wanted, TradeSide.BUY)
        assert d.amm.estimate_out(needed, TradeSide.BUY) >= wanted
        assert d.amm.estimate_out(needed - 1, TradeSide.BUY) < wanted
        assert d.amm.buy(ALICE, needed, wanted).amount_out >= wanted

    def test_price_rises(self):
        d, _ = _market()
        before = d.amm.current_price()
        d.amm.buy(ALICE, U)
        assert d.amm.current_price() > before

    def test_slippage(self):
        d, _ = _market()
        before = _state(d)
        quoted = d.amm.estimate_out(U)
        with pytest.raises(SlippageExceededError) as exc:
            d.amm.buy(ALICE, U, quoted + 1)
        assert exc.value.actual == quoted
        assert exc.value.minimum == quoted + 1
        assert _state(d) == before

    def test_zero_amount(self):
        d, _ = _market()
        with pytest.raises(InvalidInputError, match="positive"):
            d.amm.buy(ALICE, 0)

    def test_caller_cannot_pay(self):
        d, _ = _market()
        before = _state(d)
        with pytest.raises(InsufficientFundsError):
            d.amm.buy(CAROL, U)
        assert _state(d) == before
        assert not d.amm.is_locked

    def test_trade_too_small(self):
        native = NativeLedger()
        token = FungibleToken("Tiny", "TNY")
        token.add_operator(AMM_ADDRESS)
        token.mint(AMM_ADDRESS, AMM_ADDRESS, 1_000)
        amm = PricingEngine(token, native, ReservePair(10 ** 24, 1_000, 10 ** 24), clock=ManualClock())
        native.credit(ALICE, 10 ** 6)
        with pytest.raises(InvalidInputError, match="too small"):
            amm.buy(ALICE, 1_000)
        assert native.balance_of(ALICE) == 10 ** 6


class TestSell:

    def test_sell_half(self):
        d, _ = _market()
        d.amm.buy(ALICE, 10 * U)
        held = d.token.balance_of(ALICE)
        amount = held // 2
        native_before, token_reserve_before = d.amm.get_reserves()
        supply_before = d.token.total_supply
        price_before = d.amm.current_price()
        quoted = d.amm.estimate_out(amount, TradeSide.SELL)

        result = d.amm.sell(ALICE, amount)

        fee = compute_fee(amount, 30)
        assert result.amount_out == quoted
        assert result.amount_out == swap_output(amount, token_reserve_before, native_before)
        assert result.fee == fee
        assert d.amm.get_reserves() == (native_before - quoted, token_reserve_before)
        assert d.amm.accumulated_fees()[0] == fee
        assert d.token.total_supply == supply_before - (amount - fee)
        assert d.token.balance_of(ALICE) == held - amount
        assert d.native.balance_of(ALICE) == 990 * U + quoted
        assert d.amm.current_price() < price_before
        assert d.amm.events[-1] == FeeAccrued("token", fee, d.amm.events[-1].timestamp)

    def test_blocked_at_floor(self):
        d, _ = _market()
        with pytest.raises(ReserveFloorError, match="floor"):
            d.amm.sell(DEV, 1_000 * U)

    def test_floor_guard_ignores_slippage_bound(self):
        d, _ = _market()
        d.amm.buy(ALICE, U)
        before = _state(d)
        with pytest.raises(GuardViolationError):
            d.amm.sell(DEV, 100_000 * U, 0)
        assert _state(d) == before

    def test_slippage(self):
        d, _ = _market()
        d.amm.buy(ALICE, 10 * U)
        amount = d.token.balance_of(ALICE) // 4
        quoted = d.amm.estimate_out(amount, TradeSide.SELL)
        before = _state(d)
        with pytest.raises(SlippageExceededError):
            d.amm.sell(ALICE, amount, quoted + 1)
        assert _state(d) == before

    def test_more_than_balance(self):
        d, _ = _market()
        d.amm.buy(ALICE, U)
        with pytest.raises(InsufficientFundsError):
            d.amm.sell(ALICE, d.token.balance_of(ALICE) + 1)

    def test_estimate_in_for_sell(self):
        d, _ = _market()
        d.amm.buy(ALICE, 10 * U)
        wanted = U // 10
        needed = d.amm.estimate_in(wanted, TradeSide.SELL)
        assert d.amm.sell(ALICE, needed, wanted).amount_out >= wanted


class TestProperties:

    def _trade_sequence(self, d):
        prices = [d.amm.current_price()]
        d.amm.buy(ALICE, 5 * U)
        prices.append(d.amm.current_price())
        d.amm.buy(BOB, 3 * U)
        prices.append(d.amm.current_price())
        d.amm.sell(ALICE, 1_000 * U)
        prices.append(d.amm.current_price())
        d.amm.sell(BOB, 500 * U)
        prices.append(d.amm.current_price())
        d.amm.buy(ALICE, U)
        prices.append(d.amm.current_price())
        return prices

    def test_conservation(self):
        d, _ = _market()
        self._trade_sequence(d)
        stats = d.amm.stats
        native_reserve, _ = d.amm.get_reserves()
        assert (
            native_reserve + stats.total_native_fees + stats.total_native_out
            == stats.total_native_in + 100 * U
        )
        assert d.amm.native_balance() == native_reserve - 100 * U + d.amm.fees.fee_in_native
        assert stats.buy_count == 3 and stats.sell_count == 2

    def test_monotonic_price(self):
        d, _ = _market()
        p = self._trade_sequence(d)
        assert p[0] < p[1] < p[2]
        assert p[2] > p[3] > p[4]
        assert p[5] > p[4]

    def test_price_impact_grows_with_size(self):
        d, _ = _market()
        assert 0 < d.amm.price_impact(U // 10) < d.amm.price_impact(10 * U)


class TestRecipientCallbacks:

    def test_reentrant_buy_from_sell_payout(self):
        d, _ = _market()
        d.amm.buy(ALICE, 10 * U)
        d.native.register_receive_hook(ALICE, lambda sender, amount: d.amm.buy(ALICE, U))
        before = _state(d)

        with pytest.raises(TransferFailureError) as exc:
            d.amm.sell(ALICE, 1_000 * U)

        assert isinstance(exc.value.__cause__, ReentrancyError)
        assert _state(d) == before
        assert not d.amm.is_locked

    def test_failing_recipient_reverts_sell(self):
        d, _ = _market()
        d.amm.buy(ALICE, 10 * U)

        def refuse(sender, amount):
            raise RuntimeError("recipient refuses native currency")

        d.native.register_receive_hook(ALICE, refuse)
        before = _state(d)
        with pytest.raises(TransferFailureError, match="refuses"):
            d.amm.sell(ALICE, 1_000 * U)
        assert _state(d) == before

        d.native.remove_receive_hook(ALICE)
        assert d.amm.sell(ALICE, 1_000 * U).amount_out > 0

    def test_hook_stake_reverted_with_sell(self):
        d, _ = _market()
        d.amm.buy(ALICE, 10 * U)

        def stake_then_refuse(sender, amount):
            d.token.approve(ALICE, STAKING_ADDRESS, 5 * U)
            d.staking.stake(ALICE, 5 * U)
            raise RuntimeError("recipient refuses after staking")

        d.native.register_receive_hook(ALICE, stake_then_refuse)
        before = _state(d)
        staking_events = len(d.staking.events)

        with pytest.raises(TransferFailureError):
            d.amm.sell(ALICE, 1_000 * U)

        assert _state(d) == before
        assert d.staking.total_staked == 0
        assert d.staking.stake_of(ALICE) is None
        assert d.token.allowance(ALICE, STAKING_ADDRESS) == 0
        assert len(d.staking.events) == staking_events
        assert not d.staking.is_locked


class TestFeeDrain:

    def _with_fees(self):
        d, clock = _market()
        d.amm.buy(ALICE, 10 * U)
        d.amm.sell(ALICE, 1_000 * U)
        return d, clock

    def test_drain_moves_both_fee_streams(self):
        d, clock = self._with_fees()
        token_fees, native_fees = d.amm.accumulated_fees()
        assert token_fees == 3 * U
        assert native_fees == 3 * 10 ** 16

        assert d.amm.drain_fees() == (token_fees, native_fees)

        assert d.amm.accumulated_fees() == (0, 0)
        assert d.amm.fees.last_drain == clock.now
        assert d.staking.pools.token_reward_pool == token_fees
        assert d.staking.pools.native_reward_pool == native_fees
        assert d.token.balance_of(STAKING_ADDRESS) == token_fees
        assert d.staking.get_contract_balance() == native_fees
        assert d.token.allowance(AMM_ADDRESS, STAKING_ADDRESS) == 0
        assert d.amm.events[-1] == FeesDrained(STAKING_ADDRESS, token_fees, native_fees, clock.now)

    def test_cooldown(self):
        d, clock = self._with_fees()
        d.amm.drain_fees()
        with pytest.raises(CooldownError):
            d.amm.drain_fees()
        clock.advance(86_399)
        with pytest.raises(CooldownError):
            d.amm.drain_fees()
        clock.advance(1)
        assert d.amm.drain_fees() == (0, 0)

    def test_reward_token_mismatch(self):
        d, _ = self._with_fees()
        d.staking.set_reward_token(FungibleToken("Other", "OTH"))
        before = _state(d)

        with pytest.raises(ConfigurationError, match="OTH"):
            d.amm.drain_fees()
        assert _state(d) == before

        d.staking.set_reward_token(d.token)
        assert d.amm.drain_fees() == (3 * U, 3 * 10 ** 16)

    def test_drain_at_time_zero_starts_cooldown(self):
        clock = ManualClock(0)
        d = deploy_pair(DEV, clock=clock)
        assert d.amm.drain_fees() == (0, 0)
        assert d.amm.fees.last_drain == 0
        assert d.amm.next_drain_time() == d.amm.drain_cooldown
        with pytest.raises(CooldownError):
            d.amm.drain_fees()

    def test_no_destination(self):
        d, _ = self._with_fees()
        d.amm.set_reward_destination(None)
        with pytest.raises(ConfigurationError):
            d.amm.drain_fees()
        assert d.amm.accumulated_fees() == (3 * U, 3 * 10 ** 16)

    def test_all_or_nothing(self):
        d, _ = self._with_fees()

        def refuse(sender, amount):
            raise RuntimeError("staking account refuses native currency")

        d.native.register_receive_hook(STAKING_ADDRESS, refuse)
        before = _state(d)
        staking_events = len(d.staking.events)

        with pytest.raises(TransferFailureError):
            d.amm.drain_fees()

        assert _state(d) == before
        assert len(d.staking.events) == staking_events
        assert d.token.allowance(AMM_ADDRESS, STAKING_ADDRESS) == 0
        assert d.amm.next_drain_time() == 0
