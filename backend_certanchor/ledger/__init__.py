"""
Ledger gateway: the single Stellar network abstraction the engine talks to.

LedgerGateway is the abstract contract (create_account, submit_transaction,
get_transaction, account_exists); HorizonGateway implements it over Horizon.
"""

from backend_certanchor.ledger.gateway import (
    AccountLookup,
    AnchorMemo,
    CreatedAccount,
    LedgerGateway,
    SubmitResult,
    TransactionLookup,
)
from backend_certanchor.ledger.horizon import HorizonGateway

__all__ = [
    "AccountLookup",
    "AnchorMemo",
    "CreatedAccount",
    "HorizonGateway",
    "LedgerGateway",
    "SubmitResult",
    "TransactionLookup",
]
