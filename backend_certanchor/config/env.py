"""
Environment variable loading and parsing for CertAnchor.

- STELLAR_NETWORK: public | test (default: test; "testnet" and "mainnet" accepted)
- STELLAR_HORIZON_PUBLIC_URL / STELLAR_HORIZON_TESTNET_URL: Horizon endpoints
- STELLAR_ISSUER_SECRET_KEY: issuer account that signs anchoring transactions
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_certanchor/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

NETWORK_PUBLIC = "public"
NETWORK_TEST = "test"
KNOWN_NETWORKS = (NETWORK_PUBLIC, NETWORK_TEST)

PUBLIC_HORIZON_URL = "https://horizon.stellar.org"
TESTNET_HORIZON_URL = "https://horizon-testnet.stellar.org"
FRIENDBOT_URL = "https://friendbot.stellar.org"


def load_certanchor_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def env_str(name: str, default: str = "") -> str:
    load_certanchor_env()
    return (os.getenv(name) or default).strip()


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def env_bool(name: str, default: bool = False) -> bool:
    raw = env_str(name).lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return default


def normalize_network(raw: str | None) -> str | None:
    """
    Map a user-supplied network name to public | test.
    Returns None for unknown names.
    """
    s = (raw or "").strip().lower()
    if s in ("public", "mainnet", "pubnet"):
        return NETWORK_PUBLIC
    if s in ("test", "testnet"):
        return NETWORK_TEST
    return None


def get_stellar_network() -> str:
    """Return STELLAR_NETWORK from env: public | test. Default: test."""
    return normalize_network(env_str("STELLAR_NETWORK", NETWORK_TEST)) or NETWORK_TEST


def get_horizon_urls() -> dict[str, str]:
    """Return Horizon base URL per network, env overrides first."""
    return {
        NETWORK_PUBLIC: env_str("STELLAR_HORIZON_PUBLIC_URL", PUBLIC_HORIZON_URL).rstrip("/"),
        NETWORK_TEST: env_str("STELLAR_HORIZON_TESTNET_URL", TESTNET_HORIZON_URL).rstrip("/"),
    }
