"""
Scripted simulation runner behind ``dswap simulate``.

A script is a JSON document:

    {
      "deployer": "dev",
      "accounts": {"alice": "10", "bob": "5"},
      "steps": [
        {"op": "buy", "account": "alice", "amount": "1", "slippage": 1},
        {"op": "stake", "account": "dev", "amount": "1000"},
        {"op": "fund_native", "account": "bob", "amount": "1"},
        {"op": "advance", "seconds": 3600},
        {"op": "claim", "account": "dev"},
        {"op": "sell", "account": "alice", "amount": "100", "expect": "ReserveFloorError"}
      ]
    }

Accounts are credited with native currency. Amounts are whole units (strings
or numbers, fractions allowed) converted to smallest units. A step may name
the exception class it expects in ``expect``; any other failure stops the run.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..clock import ManualClock
from ..config import DswapConfig
from ..constants import TOKEN_UNIT
from ..deploy import Deployment, deploy_from_config
from ..exceptions import DswapException, InvalidInputError
from ..exchange import TradeSide, min_out_with_slippage
from ..logger import get_logger

logger = get_logger(__name__)


def to_units(value: Any) -> int:
    """Whole-unit amount ("1.5", 2, "0.001") to smallest units."""
    try:
        amount = Decimal(str(value)) * TOKEN_UNIT
    except InvalidOperation as e:
        raise InvalidInputError(f"Not a number: {value!r}") from e
    if amount != amount.to_integral_value():
        raise InvalidInputError(f"Amount {value!r} has more than 18 decimals")
    return int(amount)


def format_units(amount: int) -> str:
    """Smallest units to a whole-unit string without trailing zeros."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), TOKEN_UNIT)
    if frac == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{str(frac).rjust(18, '0').rstrip('0')}"


@dataclass
class StepResult:
    index: int
    op: str
    ok: bool
    detail: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "op": self.op,
            "ok": self.ok,
            "detail": self.detail,
            "error": self.error,
        }


@dataclass
class SimulationReport:
    steps: List[StepResult] = field(default_factory=list)
    final_state: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "final_state": self.final_state,
        }


class Simulator:
    """Runs a script against a fresh deployment on a manual clock."""

    def __init__(self, config: DswapConfig, deployer: str = "deployer", start_time: int = 1_700_000_000):
        self.clock = ManualClock(start_time)
        self.deployment: Deployment = deploy_from_config(config, deployer, clock=self.clock)
        self._ops: Dict[str, Callable[[Dict[str, Any]], str]] = {
            "buy": self._buy,
            "sell": self._sell,
            "stake": self._stake,
            "withdraw": self._withdraw,
            "claim": self._claim,
            "advance": self._advance,
            "drain": self._drain,
            "fund_native": self._fund_native,
            "fund_token": self._fund_token,
            "transfer": self._transfer,
        }

    # -- ops ----------------------------------------------------------------

    def _buy(self, step: Dict[str, Any]) -> str:
        amm = self.deployment.amm
        amount = to_units(step["amount"])
        min_out = min_out_with_slippage(amm.estimate_out(amount, TradeSide.BUY), int(step.get("slippage", 0)))
        result = amm.buy(step["account"], amount, min_out)
        return f"{step['account']} bought {format_units(result.amount_out)} tokens for {format_units(amount)}"

    def _sell(self, step: Dict[str, Any]) -> str:
        amm = self.deployment.amm
        amount = to_units(step["amount"])
        min_out = min_out_with_slippage(amm.estimate_out(amount, TradeSide.SELL), int(step.get("slippage", 0)))
        result = amm.sell(step["account"], amount, min_out)
        return f"{step['account']} sold {format_units(amount)} tokens for {format_units(result.amount_out)}"

    def _stake(self, step: Dict[str, Any]) -> str:
        staking = self.deployment.staking
        amount = to_units(step["amount"])
        self.deployment.token.approve(step["account"], staking.address, amount)
        record = staking.stake(step["account"], amount)
        return f"{step['account']} staked {format_units(amount)}, now {format_units(record.amount)}"

    def _withdraw(self, step: Dict[str, Any]) -> str:
        amount = to_units(step["amount"])
        record = self.deployment.staking.withdraw(step["account"], amount)
        return f"{step['account']} withdrew {format_units(amount)}, now {format_units(record.amount)}"

    def _claim(self, step: Dict[str, Any]) -> str:
        native_paid, token_paid = self.deployment.staking.claim(step["account"])
        return f"{step['account']} claimed {format_units(native_paid)} native and {format_units(token_paid)} tokens"

    def _advance(self, step: Dict[str, Any]) -> str:
        now = self.clock.advance(int(step["seconds"]))
        return f"clock at {now}"

    def _drain(self, step: Dict[str, Any]) -> str:
        token_fees, native_fees = self.deployment.amm.drain_fees()
        return f"drained {format_units(token_fees)} token and {format_units(native_fees)} native fees"

    def _fund_native(self, step: Dict[str, Any]) -> str:
        amount = to_units(step["amount"])
        self.deployment.staking.receive_native_funds(step["account"], amount)
        return f"{step['account']} funded native pool with {format_units(amount)}"

    def _fund_token(self, step: Dict[str, Any]) -> str:
        staking = self.deployment.staking
        amount = to_units(step["amount"])
        self.deployment.token.approve(step["account"], staking.address, amount)
        staking.top_up_token_pool(step["account"], amount)
        return f"{step['account']} funded token pool with {format_units(amount)}"

    def _transfer(self, step: Dict[str, Any]) -> str:
        amount = to_units(step["amount"])
        self.deployment.token.transfer(step["account"], step["to"], amount)
        return f"{step['account']} sent {format_units(amount)} tokens to {step['to']}"

    # -- driver -------------------------------------------------------------

    def run_step(self, index: int, step: Dict[str, Any]) -> StepResult:
        op = step.get("op")
        handler = self._ops.get(op)
        if handler is None:
            raise InvalidInputError(f"Step {index}: unknown op {op!r}")
        expected = step.get("expect")

        try:
            detail = handler(step)
        except KeyError as e:
            raise InvalidInputError(f"Step {index} ({op}): missing field {e}") from e
        except DswapException as e:
            if expected == type(e).__name__:
                logger.info(f"Step {index} ({op}) rejected as expected: {e}")
                return StepResult(index, op, False, str(e), type(e).__name__)
            raise

        if expected:
            raise InvalidInputError(f"Step {index} ({op}): expected {expected} but it succeeded")
        return StepResult(index, op, True, detail)

    def run(self, script: Dict[str, Any]) -> SimulationReport:
        for account, balance in script.get("accounts", {}).items():
            self.deployment.native.credit(account, to_units(balance))

        report = SimulationReport()
        for index, step in enumerate(script.get("steps", [])):
            report.steps.append(self.run_step(index, step))

        report.final_state = self.state()
        return report

    def state(self) -> Dict[str, Any]:
        d = self.deployment
        accounts = sorted((set(d.token.holders) | set(d.staking.stakers)) - {d.amm.address, d.staking.address})
        return {
            "time": self.clock.now,
            "amm": d.amm.to_dict(),
            "price": format_units(d.amm.current_price()),
            "staking": d.staking.to_dict(),
            "accounts": {
                a: {
                    "native": format_units(d.native.balance_of(a)),
                    "token": format_units(d.token.balance_of(a)),
                    "staked": format_units(d.staking.get_staked_amount(a)),
                    "earned_native": format_units(d.staking.earned_native(a)),
                    "earned_token": format_units(d.staking.earned_token(a)),
                }
                for a in accounts
            },
        }


def load_script(path: str) -> Dict[str, Any]:
    try:
        with open(Path(path), "r", encoding="utf-8") as f:
            script = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(script, dict) or not isinstance(script.get("steps", []), list):
        raise InvalidInputError("Script must be an object with a 'steps' list")
    return script
