"""Asset ledger: token balances, allowances and atomic units of work.

The settlement engine only needs the ERC20 surface (``transfer``,
``transfer_from``, ``approve``, ``balance_of``) plus a way to make a group
of mutations all-or-nothing. ``InMemoryLedger`` provides both for
simulation and tests; ``atomic()`` plays the role of the enclosing
transaction, restoring every balance and allowance if the block raises.
Units of work are serialized: a thread inside ``atomic()`` holds the
ledger lock until the block exits, so a rollback never restores over
another unit's committed changes.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Protocol

import structlog

from aggregator.constants import UINT256_MAX
from aggregator.errors import InsufficientAllowance, InsufficientBalance
from aggregator.models.types import normalize_address

logger = structlog.get_logger()


class AssetLedger(Protocol):
    """Protocol for token ledgers used by settlement."""

    def balance_of(self, token: str, holder: str) -> int: ...

    def allowance(self, token: str, owner: str, spender: str) -> int: ...

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None: ...

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None: ...

    def transfer_from(
        self, token: str, spender: str, owner: str, recipient: str, amount: int
    ) -> None: ...

    def atomic(self) -> AbstractContextManager[None]: ...


@dataclass(frozen=True)
class TransferRecord:
    """A committed token movement."""

    token: str
    sender: str
    recipient: str
    amount: int


class InMemoryLedger:
    """Dictionary-backed ledger with snapshot rollback.

    Addresses are normalized to lowercase on every call, so callers may mix
    checksummed and lowercase forms. An allowance of UINT256_MAX is treated
    as unlimited and never decremented.

    Every read and mutation takes the ledger lock; ``atomic()`` holds it
    for the whole block, so other threads neither see a unit's uncommitted
    changes nor write under it until it commits or rolls back.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._balances: dict[tuple[str, str], int] = {}
        self._allowances: dict[tuple[str, str, str], int] = {}
        self.transfers: list[TransferRecord] = []

    def mint(self, token: str, to: str, amount: int) -> None:
        """Credit new tokens to an account."""
        if amount < 0:
            raise ValueError(f"Cannot mint negative amount: {amount}")
        key = (normalize_address(token), normalize_address(to))
        with self._lock:
            self._balances[key] = self._balances.get(key, 0) + amount

    def balance_of(self, token: str, holder: str) -> int:
        key = (normalize_address(token), normalize_address(holder))
        with self._lock:
            return self._balances.get(key, 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        key = (normalize_address(token), normalize_address(owner), normalize_address(spender))
        with self._lock:
            return self._allowances.get(key, 0)

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        if not 0 <= amount <= UINT256_MAX:
            raise ValueError(f"Allowance out of range: {amount}")
        key = (normalize_address(token), normalize_address(owner), normalize_address(spender))
        with self._lock:
            self._allowances[key] = amount
        logger.debug("ledger_approve", token=key[0], owner=key[1], spender=key[2], amount=amount)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        """Move tokens from sender to recipient.

        Raises:
            InsufficientBalance: If sender holds less than amount
        """
        if amount < 0:
            raise ValueError(f"Cannot transfer negative amount: {amount}")
        token_n = normalize_address(token)
        sender_n = normalize_address(sender)
        recipient_n = normalize_address(recipient)

        with self._lock:
            balance = self._balances.get((token_n, sender_n), 0)
            if balance < amount:
                raise InsufficientBalance(
                    f"{sender_n} holds {balance} of {token_n}, needs {amount}"
                )
            self._balances[(token_n, sender_n)] = balance - amount
            self._balances[(token_n, recipient_n)] = (
                self._balances.get((token_n, recipient_n), 0) + amount
            )
            self.transfers.append(TransferRecord(token_n, sender_n, recipient_n, amount))

    def transfer_from(
        self, token: str, spender: str, owner: str, recipient: str, amount: int
    ) -> None:
        """Move tokens from owner to recipient on behalf of spender.

        Raises:
            InsufficientAllowance: If spender's allowance from owner is below amount
            InsufficientBalance: If owner holds less than amount
        """
        key = (normalize_address(token), normalize_address(owner), normalize_address(spender))
        with self._lock:
            allowed = self._allowances.get(key, 0)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"{key[2]} may spend {allowed} of {key[0]} from {key[1]}, needs {amount}"
                )
            self.transfer(token, owner, recipient, amount)
            if allowed != UINT256_MAX:
                self._allowances[key] = allowed - amount

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run a block as one unit of work, rolling back on any exception.

        The ledger lock is held until the block exits; nested units in the
        same thread roll back only their own changes.
        """
        with self._lock:
            balances = dict(self._balances)
            allowances = dict(self._allowances)
            transfer_count = len(self.transfers)
            try:
                yield
            except BaseException:
                discarded = len(self.transfers) - transfer_count
                self._balances = balances
                self._allowances = allowances
                del self.transfers[transfer_count:]
                logger.debug("ledger_rolled_back", discarded_transfers=discarded)
                raise


__all__ = ["AssetLedger", "InMemoryLedger", "TransferRecord"]
