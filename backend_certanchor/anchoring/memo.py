"""
Certificate memo: binds a certificate id to its anchoring transaction.

The memo is derived from the certificate id alone, so verification can
cross-check memo and id without trusting the hash lookup. Stellar text memos
hold at most 28 bytes; longer ids are carried as a sha256 hash memo.
"""

from __future__ import annotations

import hashlib

from backend_certanchor.ledger.gateway import MEMO_HASH, MEMO_TEXT, AnchorMemo

MEMO_PREFIX = "CERT:"
MAX_TEXT_MEMO_BYTES = 28


def build_memo(certificate_id: str) -> AnchorMemo:
    text = f"{MEMO_PREFIX}{certificate_id}"
    raw = text.encode("utf-8")
    if len(raw) <= MAX_TEXT_MEMO_BYTES:
        return AnchorMemo(MEMO_TEXT, text)
    return AnchorMemo(MEMO_HASH, hashlib.sha256(raw).hexdigest())


def memo_matches(memo: AnchorMemo | None, certificate_id: str) -> bool:
    """True when the ledger reported no memo or the memo is the one derived from certificate_id."""
    if memo is None:
        return True
    expected = build_memo(certificate_id)
    if memo.kind != expected.kind:
        return False
    if memo.kind == MEMO_HASH:
        return memo.value.lower() == expected.value
    return memo.value == expected.value
