"""
Pytest fixtures for CertAnchor tests. Temporary SQLite DB per test, an
in-process fake ledger gateway, and a manual clock for TTL / token-bucket tests.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections import Counter
from typing import Any

import pytest
from stellar_sdk import Keypair

from backend_certanchor.config.settings import EngineSettings
from backend_certanchor.database import (
    SQLAlchemyCertificateStore,
    SQLAlchemyVerificationStore,
    get_database,
)
from backend_certanchor.engine import assemble_engine
from backend_certanchor.ledger.gateway import (
    AccountLookup,
    AnchorMemo,
    CreatedAccount,
    LedgerGateway,
    SubmitResult,
    TransactionLookup,
)


class ManualClock:
    """Monotonic-style clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLedgerGateway(LedgerGateway):
    """
    In-memory ledger. Successful submissions become successful transactions
    carrying the submitted memo. fail_with / delay / submit_result override
    behavior per operation.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, dict[str, Any]] = {}
        self.transactions: dict[str, TransactionLookup] = {}
        self.submitted: list[tuple[str, AnchorMemo]] = []
        self.created: list[str] = []
        self.calls: Counter[str] = Counter()
        self.fail_with: dict[str, Exception] = {}
        self.delay: dict[str, float] = {}
        self.submit_result: SubmitResult | None = None

    async def _enter(self, op: str) -> None:
        self.calls[op] += 1
        if op in self.delay:
            await asyncio.sleep(self.delay[op])
        if op in self.fail_with:
            raise self.fail_with[op]

    async def create_account(self) -> CreatedAccount:
        await self._enter("create_account")
        key = Keypair.random().public_key
        self.created.append(key)
        self.accounts[key] = {"id": key, "sequence": "1"}
        return CreatedAccount(public_key=key)

    async def submit_transaction(self, destination: str, memo: AnchorMemo) -> SubmitResult:
        await self._enter("submit_transaction")
        self.submitted.append((destination, memo))
        if self.submit_result is not None:
            return self.submit_result
        tx_hash = hashlib.sha256(f"{destination}:{memo.value}:{len(self.submitted)}".encode()).hexdigest()
        self.transactions[tx_hash] = TransactionLookup(successful=True, memo=memo)
        return SubmitResult(successful=True, hash=tx_hash)

    async def get_transaction(self, tx_hash: str) -> TransactionLookup:
        await self._enter("get_transaction")
        return self.transactions.get(
            tx_hash, TransactionLookup(successful=False, found=False, error="Transaction not found")
        )

    async def account_exists(self, address: str, network: str) -> AccountLookup:
        await self._enter("account_exists")
        details = self.accounts.get(address)
        return AccountLookup(exists=details is not None, details=details)


def run(coro: Any) -> Any:
    return asyncio.run(coro)


def new_address() -> str:
    return Keypair.random().public_key


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def gateway() -> FakeLedgerGateway:
    return FakeLedgerGateway()


@pytest.fixture
def settings(tmp_path) -> EngineSettings:
    return EngineSettings(
        stellar_network="test",
        horizon_urls={
            "public": "https://horizon.example.org",
            "test": "https://horizon-testnet.example.org",
        },
        friendbot_url="https://friendbot.example.org",
        issuer_secret_key="",
        cache_ttl_ms=300_000,
        cache_max_size=1000,
        rate_limit_rps=10.0,
        rate_limit_burst=20,
        ledger_timeout_sec=1.0,
        stats_cache_ttl_sec=300.0,
        expiry_blocks_verification=True,
        database_url=f"sqlite:///{tmp_path / 'certanchor.db'}",
    )


@pytest.fixture
def db(settings):
    database = get_database(settings.database_url)
    yield database
    database.dispose()


@pytest.fixture
def certificate_store(db) -> SQLAlchemyCertificateStore:
    return SQLAlchemyCertificateStore(db)


@pytest.fixture
def verification_store(db) -> SQLAlchemyVerificationStore:
    return SQLAlchemyVerificationStore(db)


@pytest.fixture
def build(gateway, certificate_store, verification_store, db):
    """Factory: engine over the fake gateway and temp DB for the given settings."""

    def _build(cfg: EngineSettings):
        return assemble_engine(cfg, gateway, certificate_store, verification_store, database=db)

    return _build


@pytest.fixture
def engine(build, settings):
    return build(settings)
