"""
Horizon-backed LedgerGateway.

- Reads (accounts, transactions) are plain Horizon REST calls over httpx.
- Anchoring transactions are built and signed with stellar-sdk: one native
  payment of ANCHOR_PAYMENT_AMOUNT from the issuer to the destination, carrying
  the certificate memo, then POSTed to /transactions.
- create_account: friendbot funding on the test network; on the public network
  the issuer sends a create_account operation.
Every request is bounded by the client timeout (LEDGER_TIMEOUT_SEC). Transport
failures and unexpected statuses raise LedgerUnavailable.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Callable

import httpx
from stellar_sdk import Account, Asset, Keypair, Network, TransactionBuilder

from backend_certanchor.certanchor_logging import get_logger
from backend_certanchor.certanchor_logging.logger import short_address
from backend_certanchor.config.env import NETWORK_PUBLIC
from backend_certanchor.config.settings import EngineSettings
from backend_certanchor.core.exceptions import LedgerUnavailable
from backend_certanchor.ledger.gateway import (
    MEMO_HASH,
    MEMO_TEXT,
    AccountLookup,
    AnchorMemo,
    CreatedAccount,
    LedgerGateway,
    SubmitResult,
    TransactionLookup,
)

logger = get_logger(__name__)

# Fields of a Horizon account record surfaced as account_details
ACCOUNT_DETAIL_FIELDS = (
    "id",
    "sequence",
    "subentry_count",
    "thresholds",
    "flags",
    "balances",
    "signers",
)
TX_VALIDITY_WINDOW_SEC = 60


def _result_codes(body: Any) -> str:
    """Extract Horizon's extras.result_codes from an error body for the failure reason."""
    if not isinstance(body, dict):
        return "unknown error"
    extras = body.get("extras") or {}
    codes = extras.get("result_codes")
    if codes:
        return str(codes)
    return str(body.get("title") or body.get("detail") or "unknown error")


def _parse_memo(record: dict[str, Any]) -> AnchorMemo | None:
    memo_type = record.get("memo_type")
    memo = record.get("memo")
    if memo is None:
        return None
    if memo_type == MEMO_TEXT:
        return AnchorMemo(MEMO_TEXT, str(memo))
    if memo_type == MEMO_HASH:
        try:
            return AnchorMemo(MEMO_HASH, base64.b64decode(memo).hex())
        except (binascii.Error, ValueError):
            return None
    return None


def _safe_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


class HorizonGateway(LedgerGateway):
    """LedgerGateway over Horizon REST for the configured Stellar network."""

    def __init__(
        self,
        settings: EngineSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(settings.ledger_timeout_sec))
        self._owns_client = client is None
        self._issuer: Keypair | None = None
        if settings.issuer_secret_key:
            try:
                self._issuer = Keypair.from_secret(settings.issuer_secret_key)
            except Exception as e:
                logger.warning("issuer_keypair_load_failed", error=str(e))
                raise ValueError("Invalid STELLAR_ISSUER_SECRET_KEY") from e
        self._passphrase = (
            Network.PUBLIC_NETWORK_PASSPHRASE
            if settings.stellar_network == NETWORK_PUBLIC
            else Network.TESTNET_NETWORK_PASSPHRASE
        )

    @property
    def issuer_public_key(self) -> str | None:
        return self._issuer.public_key if self._issuer else None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("ledger_request_timeout", method=method, url=url, error=str(e))
            raise LedgerUnavailable(f"Ledger request timed out: {method} {url}") from e
        except httpx.HTTPError as e:
            logger.warning("ledger_request_failed", method=method, url=url, error=str(e))
            raise LedgerUnavailable(f"Ledger request failed: {e}") from e

    # --- Reads ---

    async def account_exists(self, address: str, network: str) -> AccountLookup:
        base = self._settings.horizon_urls.get(network)
        if not base:
            raise LedgerUnavailable(f"No Horizon URL configured for network {network!r}")
        resp = await self._request("GET", f"{base}/accounts/{address}")
        if resp.status_code == 404:
            return AccountLookup(exists=False)
        if resp.status_code != 200:
            raise LedgerUnavailable(f"Unexpected Horizon status {resp.status_code} for account lookup")
        body = _safe_json(resp) or {}
        details = {k: body[k] for k in ACCOUNT_DETAIL_FIELDS if k in body}
        return AccountLookup(exists=True, details=details)

    async def get_transaction(self, tx_hash: str) -> TransactionLookup:
        resp = await self._request("GET", f"{self._settings.horizon_url}/transactions/{tx_hash}")
        if resp.status_code == 404:
            return TransactionLookup(successful=False, found=False, error="Transaction not found")
        if resp.status_code != 200:
            raise LedgerUnavailable(f"Unexpected Horizon status {resp.status_code} for transaction lookup")
        body = _safe_json(resp) or {}
        return TransactionLookup(
            successful=body.get("successful") is True,
            found=True,
            memo=_parse_memo(body),
        )

    # --- Writes ---

    def _require_issuer(self) -> Keypair:
        if self._issuer is None:
            raise LedgerUnavailable("STELLAR_ISSUER_SECRET_KEY is not configured")
        return self._issuer

    async def _load_issuer_account(self, issuer: Keypair) -> Account:
        resp = await self._request("GET", f"{self._settings.horizon_url}/accounts/{issuer.public_key}")
        if resp.status_code != 200:
            raise LedgerUnavailable(f"Could not load issuer account (status {resp.status_code})")
        body = _safe_json(resp) or {}
        try:
            return Account(issuer.public_key, int(body["sequence"]))
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerUnavailable("Issuer account response has no sequence") from e

    async def _build_and_submit(self, add_operations: Callable[[TransactionBuilder], None]) -> SubmitResult:
        issuer = self._require_issuer()
        account = await self._load_issuer_account(issuer)
        builder = TransactionBuilder(
            source_account=account,
            network_passphrase=self._passphrase,
            base_fee=self._settings.base_fee,
        )
        add_operations(builder)
        envelope = builder.set_timeout(TX_VALIDITY_WINDOW_SEC).build()
        envelope.sign(issuer)

        resp = await self._request(
            "POST",
            f"{self._settings.horizon_url}/transactions",
            data={"tx": envelope.to_xdr()},
        )
        body = _safe_json(resp)
        if resp.status_code == 200 and isinstance(body, dict):
            return SubmitResult(
                successful=body.get("successful", True) is True,
                hash=body.get("hash"),
                error=None if body.get("successful", True) else "Transaction failed",
            )
        if resp.status_code == 400:
            return SubmitResult(successful=False, error=_result_codes(body))
        raise LedgerUnavailable(f"Unexpected Horizon status {resp.status_code} on submit")

    async def submit_transaction(self, destination: str, memo: AnchorMemo) -> SubmitResult:
        def _ops(builder: TransactionBuilder) -> None:
            builder.append_payment_op(
                destination=destination,
                asset=Asset.native(),
                amount=self._settings.anchor_payment_amount,
            )
            if memo.kind == MEMO_HASH:
                builder.add_hash_memo(bytes.fromhex(memo.value))
            else:
                builder.add_text_memo(memo.value)

        result = await self._build_and_submit(_ops)
        if result.successful:
            logger.info("ledger_tx_submitted", tx_hash=result.hash, destination=short_address(destination))
        else:
            logger.warning("ledger_tx_rejected", destination=short_address(destination), error=result.error)
        return result

    async def create_account(self) -> CreatedAccount:
        keypair = Keypair.random()
        if self._settings.stellar_network == NETWORK_PUBLIC:
            def _ops(builder: TransactionBuilder) -> None:
                builder.append_create_account_op(
                    destination=keypair.public_key,
                    starting_balance=self._settings.new_account_starting_balance,
                )

            result = await self._build_and_submit(_ops)
            if not result.successful:
                raise LedgerUnavailable(f"Account creation rejected: {result.error}")
        else:
            resp = await self._request(
                "GET",
                self._settings.friendbot_url,
                params={"addr": keypair.public_key},
            )
            if resp.status_code != 200:
                raise LedgerUnavailable(f"Friendbot funding failed (status {resp.status_code})")
        logger.info("ledger_account_created", address=short_address(keypair.public_key))
        return CreatedAccount(public_key=keypair.public_key)
