"""
Ledger gateway contract and result types.

Every call crosses a network boundary. Implementations return result objects
for answers the ledger gave (including "no" answers such as a failed or
unknown transaction) and raise LedgerUnavailable when no answer was obtained
(timeout, connection error, unexpected status).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

MEMO_TEXT = "text"
MEMO_HASH = "hash"


@dataclass(frozen=True)
class AnchorMemo:
    """Transaction memo. value is the text for text memos, lowercase hex for hash memos."""

    kind: str
    value: str


@dataclass(frozen=True)
class CreatedAccount:
    public_key: str


@dataclass(frozen=True)
class SubmitResult:
    successful: bool
    hash: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class TransactionLookup:
    successful: bool
    found: bool = True
    memo: AnchorMemo | None = None
    error: str | None = None


@dataclass(frozen=True)
class AccountLookup:
    exists: bool
    details: dict[str, Any] | None = field(default=None, compare=False)


class LedgerGateway(ABC):
    """The one external ledger network the engine integrates with."""

    @abstractmethod
    async def create_account(self) -> CreatedAccount:
        """Create and fund a fresh account; raises LedgerUnavailable when that fails."""
        ...

    @abstractmethod
    async def submit_transaction(self, destination: str, memo: AnchorMemo) -> SubmitResult:
        """Submit the anchoring transaction to destination carrying memo."""
        ...

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> TransactionLookup:
        ...

    @abstractmethod
    async def account_exists(self, address: str, network: str) -> AccountLookup:
        ...

    async def aclose(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None
