"""
Backend CertAnchor: certificate issuance and verification anchored to Stellar.

Validates recipient ledger addresses, anchors each issued certificate to a
ledger transaction, and re-checks that anchor on every verification. Modular
architecture with clear separation between address validation, ledger
gateway, anchoring service, statistics, and the API server.
"""

__version__ = "0.1.0"
