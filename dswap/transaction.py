"""
Single-writer execution helpers.

Every state-mutating engine call runs inside ``atomic(...)``: the engine's
reentrancy guard is held for the whole call, and every participant (the
engine itself and the ledgers it touches) is snapshotted first and restored
if anything raises. A raised exception therefore always means "nothing
happened", which is how callers see transfer failures and guard rejections.

Transactions nest. A call made from inside another transaction (for example
a receive hook that stakes during an AMM payout) journals its participants
into the enclosing transaction as well, so when the outermost operation
fails every engine and ledger touched anywhere below it is restored.
Ledgers also ``enlist`` themselves on each mutation, which covers direct
ledger calls made from hooks.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional, Protocol, Tuple

from .exceptions import ReentrancyError


class Snapshottable(Protocol):
    """State holder that can be captured and rolled back."""

    def snapshot(self) -> Any: ...
    def restore(self, snapshot: Any) -> None: ...


class ReentrancyGuard:
    """Engine-wide lock held for the duration of a mutating call."""

    def __init__(self, owner: str):
        self.owner = owner
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def acquire(self) -> None:
        if self._locked:
            raise ReentrancyError(f"Reentrancy detected: {self.owner} is locked")
        self._locked = True

    def release(self) -> None:
        self._locked = False


class Transaction:
    """
    Journal of participant snapshots for one (possibly nested) transaction.

    Each participant is captured once, at the first point this transaction
    sees it; later captures keep the older snapshot.
    """

    def __init__(self, parent: Optional["Transaction"] = None):
        self.parent = parent
        self._journal: Dict[int, Tuple[Snapshottable, Any]] = {}

    def enlist(self, participant: Optional[Snapshottable]) -> None:
        if participant is None or id(participant) in self._journal:
            return
        self._journal[id(participant)] = (participant, participant.snapshot())

    def merge_into_parent(self) -> None:
        """Hand snapshots the parent has not seen yet up to the parent."""
        if self.parent is None:
            return
        for key, entry in self._journal.items():
            self.parent._journal.setdefault(key, entry)

    def rollback(self) -> None:
        for participant, snap in reversed(list(self._journal.values())):
            participant.restore(snap)


_current: "ContextVar[Optional[Transaction]]" = ContextVar("dswap_transaction", default=None)


def enlist(participant: Snapshottable) -> None:
    """Capture *participant* in the running transaction, if there is one."""
    tx = _current.get()
    if tx is not None:
        tx.enlist(participant)


@contextmanager
def transaction(*participants: Optional[Snapshottable]) -> Iterator[Transaction]:
    """
    Run a block as one indivisible state transition, without a guard.

    On failure this level's journal is restored and the exception propagates.
    On success the journal is merged into the enclosing transaction so the
    outermost level can still undo it.
    """
    tx = Transaction(_current.get())
    for participant in participants:
        tx.enlist(participant)
    reset = _current.set(tx)
    try:
        yield tx
    except BaseException:
        tx.rollback()
        raise
    else:
        tx.merge_into_parent()
    finally:
        _current.reset(reset)


@contextmanager
def atomic(guard: ReentrancyGuard, *participants: Optional[Snapshottable]) -> Iterator[None]:
    """
    Hold *guard* and run the block as a transaction over *participants*.

    Participants listed more than once (e.g. the same token used for staking
    and rewards) are captured once.
    """
    guard.acquire()
    try:
        with transaction(*participants):
            yield
    finally:
        guard.release()
