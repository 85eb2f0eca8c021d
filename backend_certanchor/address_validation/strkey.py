"""
Stellar account id (StrKey) classification: format, checksum, network.

An account id is 56 characters of RFC 4648 base32 that decode to 35 bytes:
version byte (6 << 3, which renders as "G" followed by one of A-D), the
32-byte ed25519 public key, and a CRC16-XModem checksum. The structural shape
is matched locally; decoding and the checksum are left to stellar-sdk's
StrKey. Nothing here touches the network.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from stellar_sdk import StrKey

from backend_certanchor.config.env import KNOWN_NETWORKS

# Version byte 0x30 fixes the first char to G and the top bits of the second to 000.
_ACCOUNT_ID_RE = re.compile(r"^G[A-D][A-Z2-7]{54}$")

ERROR_INVALID_FORMAT = "Invalid address format"
ERROR_INVALID_CHECKSUM = "Invalid checksum"
# Only classify() reports this; the validation service rejects unknown networks before classifying.
ERROR_INVALID_NETWORK = "Invalid network"


@dataclass(frozen=True)
class Classification:
    is_format_valid: bool
    is_checksum_valid: bool
    is_network_valid: bool
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.is_format_valid and self.is_checksum_valid and self.is_network_valid


def is_account_id_shape(address: str) -> bool:
    """56 base32 chars carrying the account id version byte."""
    return isinstance(address, str) and _ACCOUNT_ID_RE.match(address) is not None


def is_known_network(network: str) -> bool:
    # Account ids carry no network tag; any id is addressable on every known network.
    return network in KNOWN_NETWORKS


def classify(address: str, network: str) -> Classification:
    """
    Classify an address for the requested network.

    Format failure short-circuits with every flag false. A well-shaped id that
    stellar-sdk cannot decode has a bad checksum. Network is judged
    independently of the checksum; callers going through
    AddressValidationService never see it fail, since unknown network names
    are rejected as InvalidInput there.
    """
    if not is_account_id_shape(address):
        return Classification(False, False, False, ERROR_INVALID_FORMAT)

    checksum_ok = StrKey.is_valid_ed25519_public_key(address)
    network_ok = is_known_network(network)
    error = None
    if not checksum_ok:
        error = ERROR_INVALID_CHECKSUM
    elif not network_ok:
        error = ERROR_INVALID_NETWORK
    return Classification(True, checksum_ok, network_ok, error)
