"""
DSWAP ledgers

Provides:
  - FungibleToken : the pair token (balances, allowances, mint / burn)
  - NativeLedger  : native settlement currency with recipient receive hooks
"""

from .fungible import (
    FungibleToken,
    TransferEvent,
    ApprovalEvent,
    TokenError,
    InvalidAmountError,
    InsufficientBalanceError,
    InsufficientAllowanceError,
    UnauthorizedOperatorError,
)
from .native import NativeLedger, ReceiveHook

__all__ = [
    "FungibleToken",
    "TransferEvent",
    "ApprovalEvent",
    "TokenError",
    "InvalidAmountError",
    "InsufficientBalanceError",
    "InsufficientAllowanceError",
    "UnauthorizedOperatorError",
    "NativeLedger",
    "ReceiveHook",
]
