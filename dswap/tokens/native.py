"""
Native currency ledger.

Holds the settlement currency balances. A transfer credits the recipient and
then calls the recipient's receive hook, if one is registered; this is how a
contract-like recipient observes incoming value, refuses it, or calls back
into an engine. Any exception from the hook surfaces as TransferFailureError,
and everything the hook changed is undone together with the transfer.
"""

from typing import Callable, Dict, Optional

from ..exceptions import InsufficientFundsError, InvalidInputError, TransferFailureError
from ..logger import get_logger
from ..transaction import enlist, transaction

logger = get_logger(__name__)

ReceiveHook = Callable[[str, int], None]


class NativeLedger:

    def __init__(self, symbol: str = "ETH"):
        self.symbol = symbol
        self._balances: Dict[str, int] = {}
        self._receive_hooks: Dict[str, ReceiveHook] = {}

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def credit(self, address: str, amount: int) -> None:
        """Create native currency out of thin air (genesis funding, faucets, tests)."""
        if amount <= 0:
            raise InvalidInputError("Credit amount must be positive")
        enlist(self)
        self._balances[address] = self.balance_of(address) + amount

    def register_receive_hook(self, address: str, hook: ReceiveHook) -> None:
        self._receive_hooks[address] = hook

    def remove_receive_hook(self, address: str) -> Optional[ReceiveHook]:
        return self._receive_hooks.pop(address, None)

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidInputError("Transfer amount must be positive")
        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientFundsError(
                f"{sender} native balance {bal} < transfer amount {amount}"
            )

        # Whatever the hook touches is journaled here too and undone with us
        with transaction(self):
            self._balances[sender] = bal - amount
            self._balances[recipient] = self.balance_of(recipient) + amount

            hook = self._receive_hooks.get(recipient)
            if hook is not None:
                try:
                    hook(sender, amount)
                except Exception as e:
                    logger.warning(f"Native transfer {sender} → {recipient} rejected by recipient: {e}")
                    raise TransferFailureError(
                        f"Transfer of {amount} {self.symbol} to {recipient} failed: {e}"
                    ) from e
        logger.debug(f"Native transfer: {sender} → {recipient} {amount} {self.symbol}")

    def snapshot(self) -> Dict[str, int]:
        return dict(self._balances)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self._balances = dict(snapshot)

    def __repr__(self) -> str:
        return f"<NativeLedger {self.symbol} accounts={len(self._balances)}>"
