"""
StrKey classification: format, checksum, network. Pure local checks.
"""

from __future__ import annotations

import pytest
from stellar_sdk import Keypair, StrKey

from backend_certanchor.address_validation.strkey import (
    ERROR_INVALID_CHECKSUM,
    ERROR_INVALID_FORMAT,
    ERROR_INVALID_NETWORK,
    classify,
    is_account_id_shape,
)


def _swap_char(address: str, index: int) -> str:
    """Replace one base32 char with a different one."""
    replacement = "A" if address[index] != "A" else "B"
    return address[:index] + replacement + address[index + 1 :]


def test_account_id_shape():
    address = Keypair.random().public_key
    assert address[1] in "ABCD"
    assert is_account_id_shape(address)
    assert not is_account_id_shape("G" + "E" + address[2:])
    assert not is_account_id_shape(None)  # type: ignore[arg-type]


def test_valid_account_id():
    address = Keypair.random().public_key
    c = classify(address, "public")
    assert c.is_format_valid
    assert c.is_checksum_valid
    assert c.is_network_valid
    assert c.is_valid
    assert c.error is None


def test_valid_on_test_network():
    assert classify(Keypair.random().public_key, "test").is_valid


def test_invalid_address_literal():
    c = classify("INVALID_ADDRESS", "public")
    assert (c.is_format_valid, c.is_checksum_valid, c.is_network_valid) == (False, False, False)
    assert not c.is_valid
    assert c.error == ERROR_INVALID_FORMAT


@pytest.mark.parametrize(
    "mangle",
    [
        lambda a: "",
        lambda a: a[:-1],
        lambda a: a + "A",
        lambda a: a.lower(),
        lambda a: "G" * 56,
        lambda a: a[:20] + "1" + a[21:],
        lambda a: Keypair.random().secret,
    ],
    ids=["empty", "short", "long", "lowercase", "bad-version", "non-base32", "secret-seed"],
)
def test_format_failures_short_circuit(mangle):
    address = mangle(Keypair.random().public_key)
    c = classify(address, "public")
    assert not c.is_format_valid
    assert not c.is_checksum_valid
    assert not c.is_network_valid
    assert c.error == ERROR_INVALID_FORMAT


def test_corrupted_checksum_bytes():
    address = _swap_char(Keypair.random().public_key, 55)
    c = classify(address, "public")
    assert c.is_format_valid
    assert not c.is_checksum_valid
    assert not c.is_valid
    assert c.error == ERROR_INVALID_CHECKSUM


def test_corrupted_key_bytes_fail_checksum():
    address = _swap_char(Keypair.random().public_key, 10)
    c = classify(address, "test")
    assert c.is_format_valid
    assert not c.is_checksum_valid
    assert c.error == ERROR_INVALID_CHECKSUM


def test_unknown_network_is_independent_of_checksum():
    c = classify(Keypair.random().public_key, "futurenet")
    assert c.is_format_valid
    assert c.is_checksum_valid
    assert not c.is_network_valid
    assert not c.is_valid
    assert c.error == ERROR_INVALID_NETWORK


def test_classify_is_deterministic():
    address = Keypair.random().public_key
    assert classify(address, "public") == classify(address, "public")


def test_agrees_with_sdk_strkey():
    addresses = ["INVALID_ADDRESS"]
    for _ in range(20):
        address = Keypair.random().public_key
        addresses += [address, _swap_char(address, 55), _swap_char(address, 30)]

    for address in addresses:
        assert classify(address, "public").is_valid == StrKey.is_valid_ed25519_public_key(address)
