"""
Store layer: certificates and append-only verification records.

Abstract CertificateStore / VerificationStore interfaces plus a SQLAlchemy
implementation (SQLite by default, PostgreSQL via DATABASE_URL).
"""

from backend_certanchor.database.database import (
    CertificateStore,
    Database,
    SQLAlchemyCertificateStore,
    SQLAlchemyVerificationStore,
    VerificationStore,
    get_database,
)
from backend_certanchor.database.models import (
    Certificate,
    CertificateFilter,
    VerificationFilter,
    VerificationRecord,
)

__all__ = [
    "Certificate",
    "CertificateFilter",
    "CertificateStore",
    "Database",
    "SQLAlchemyCertificateStore",
    "SQLAlchemyVerificationStore",
    "VerificationFilter",
    "VerificationRecord",
    "VerificationStore",
    "get_database",
]
