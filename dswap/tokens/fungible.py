"""
Fungible token ledger

Implements the standard token bookkeeping the engines rely on:
  - ERC-20 style interface (transfer, approve, transfer_from, balance_of)
  - Operator-gated mint / burn (the AMM burns sold tokens)
  - Append-only event log
  - Snapshot / restore so a reverted engine call also reverts token moves

Amounts are integers in the smallest unit.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from ..clock import Clock, system_clock
from ..exceptions import (
    DswapException,
    GuardViolationError,
    InsufficientFundsError,
    InvalidInputError,
)
from ..logger import get_logger
from ..transaction import enlist

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(DswapException):
    """Base exception for token ledger operations."""


class InvalidAmountError(TokenError, InvalidInputError):
    """Raised for zero, negative or otherwise unusable amounts."""


class InsufficientBalanceError(TokenError, InsufficientFundsError):
    """Raised when sender balance is too low."""


class InsufficientAllowanceError(TokenError, InsufficientFundsError):
    """Raised when spender allowance is too low."""


class UnauthorizedOperatorError(TokenError, GuardViolationError):
    """Raised when a non-operator tries to mint or burn."""


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every balance move, including mints (sender "") and burns (recipient "")."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    timestamp: int = field(default_factory=system_clock)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Emitted on every successful approve."""
    token_symbol: str
    owner: str
    spender: str
    amount: int
    timestamp: int = field(default_factory=system_clock)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "token": self.token_symbol,
            "owner": self.owner,
            "spender": self.spender,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class FungibleToken:
    """
    Fungible token with ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(spender, owner, recipient, amount)
        - total_supply → int

    Callers pass their own identity explicitly; the engines are trusted to
    pass the account that initiated the operation.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = 18,
        *,
        icon_uri: Optional[str] = None,
        clock: Optional[Clock] = None,
    ):
        if not name:
            raise InvalidAmountError("Token name cannot be empty")
        if not symbol:
            raise InvalidAmountError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise InvalidAmountError(f"Decimals must be 0-18, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.icon_uri = icon_uri
        self._clock = clock or system_clock
        self._total_supply = 0

        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)
        self._events: List[Any] = []
        self._operators: Set[str] = set()

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    @property
    def holders(self) -> List[str]:
        return [a for a, b in self._balances.items() if b > 0]

    # ── Operators ─────────────────────────────────────────────────────

    def add_operator(self, address: str) -> None:
        """Authorize an address to mint and burn."""
        self._operators.add(address)
        logger.info(f"Operator added: {address} for {self.symbol}")

    def remove_operator(self, address: str) -> None:
        self._operators.discard(address)

    def is_operator(self, address: str) -> bool:
        return address in self._operators

    def _require_operator(self, address: str) -> None:
        if address not in self._operators:
            raise UnauthorizedOperatorError(f"{address} is not an operator of {self.symbol}")

    # ── Core operations ───────────────────────────────────────────────

    @staticmethod
    def _require_positive(amount: int, what: str) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidAmountError(f"{what} amount must be an integer, got {amount!r}")
        if amount <= 0:
            raise InvalidAmountError(f"{what} amount must be positive")

    def _move(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )
        enlist(self)
        self._balances[sender] = bal - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        event = TransferEvent(self.symbol, sender, recipient, amount, self._clock())
        self._events.append(event)
        return event

    def transfer(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        self._require_positive(amount, "Transfer")
        if sender == recipient:
            raise InvalidAmountError("Cannot transfer to self")

        event = self._move(sender, recipient, amount)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    def approve(self, owner: str, spender: str, amount: int) -> ApprovalEvent:
        if not isinstance(amount, int) or amount < 0:
            raise InvalidAmountError("Allowance amount cannot be negative")

        enlist(self)
        self._allowances[(owner, spender)] = amount
        event = ApprovalEvent(self.symbol, owner, spender, amount, self._clock())
        self._events.append(event)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return event

    def transfer_from(
        self,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
    ) -> TransferEvent:
        """Move *owner*'s tokens using *spender*'s allowance."""
        self._require_positive(amount, "Transfer")

        bal = self.balance_of(owner)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{owner} balance {bal} < transfer amount {amount}"
            )
        allow = self.allowance(owner, spender)
        if allow < amount:
            raise InsufficientAllowanceError(
                f"Allowance {allow} < transfer amount {amount}"
            )

        event = self._move(owner, recipient, amount)
        self._allowances[(owner, spender)] = allow - amount
        logger.debug(
            f"transferFrom: spender={spender} {owner} → {recipient} {amount} {self.symbol}"
        )
        return event

    def mint(self, operator: str, recipient: str, amount: int) -> TransferEvent:
        self._require_operator(operator)
        self._require_positive(amount, "Mint")

        enlist(self)
        self._total_supply += amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        event = TransferEvent(self.symbol, "", recipient, amount, self._clock())
        self._events.append(event)
        logger.debug(f"Mint: {amount} {self.symbol} → {recipient}")
        return event

    def burn(self, operator: str, holder: str, amount: int) -> TransferEvent:
        self._require_operator(operator)
        self._require_positive(amount, "Burn")

        bal = self.balance_of(holder)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{holder} balance {bal} < burn amount {amount}"
            )
        enlist(self)
        self._balances[holder] = bal - amount
        self._total_supply -= amount
        event = TransferEvent(self.symbol, holder, "", amount, self._clock())
        self._events.append(event)
        logger.debug(f"Burn: {holder} burned {amount} {self.symbol}")
        return event

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "allowances": dict(self._allowances),
            "total_supply": self._total_supply,
            "event_count": len(self._events),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._balances = dict(snapshot["balances"])
        self._allowances = dict(snapshot["allowances"])
        self._total_supply = snapshot["total_supply"]
        del self._events[snapshot["event_count"]:]

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": self._total_supply,
            "iconUri": self.icon_uri,
            "holders": len(self.holders),
        }

    def __repr__(self) -> str:
        return f"<FungibleToken {self.symbol} supply={self._total_supply}>"
