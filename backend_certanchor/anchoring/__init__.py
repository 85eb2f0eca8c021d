"""
Certificate anchoring: issue certificates as ledger transactions and
re-verify those anchors, keeping an append-only verification trail.
"""

from backend_certanchor.anchoring.memo import build_memo, memo_matches
from backend_certanchor.anchoring.service import (
    CertificateAnchoringService,
    IssueCertificateRequest,
    VerificationResult,
)

__all__ = [
    "CertificateAnchoringService",
    "IssueCertificateRequest",
    "VerificationResult",
    "build_memo",
    "memo_matches",
]
