"""
Application settings and environment configuration.

Every recognized option is a dataclass field whose default is read from the
environment (see config.env); explicit values win, which is how tests build
settings without touching the process environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from backend_certanchor.config.env import (
    FRIENDBOT_URL,
    KNOWN_NETWORKS,
    env_bool,
    env_float,
    env_int,
    env_str,
    get_horizon_urls,
    get_stellar_network,
)

DEFAULT_CACHE_TTL_MS = 300_000
DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_RATE_LIMIT_RPS = 10.0
DEFAULT_RATE_LIMIT_BURST = 20
DEFAULT_LEDGER_TIMEOUT_SEC = 15.0
DEFAULT_BASE_FEE = 100
DEFAULT_ANCHOR_PAYMENT_AMOUNT = "0.0000001"
DEFAULT_STARTING_BALANCE = "1"
DEFAULT_STATS_CACHE_TTL_SEC = 300.0
DEFAULT_DATABASE_URL = "sqlite:///certanchor.db"


@dataclass
class EngineSettings:
    """Config for the anchoring engine (env or explicit)."""

    stellar_network: str = field(default_factory=get_stellar_network)
    horizon_urls: dict[str, str] = field(default_factory=get_horizon_urls)
    friendbot_url: str = field(default_factory=lambda: env_str("STELLAR_FRIENDBOT_URL", FRIENDBOT_URL))
    issuer_secret_key: str = field(default_factory=lambda: env_str("STELLAR_ISSUER_SECRET_KEY"))
    cache_ttl_ms: int = field(default_factory=lambda: env_int("STELLAR_CACHE_TTL", DEFAULT_CACHE_TTL_MS))
    cache_max_size: int = field(default_factory=lambda: env_int("STELLAR_CACHE_MAX_SIZE", DEFAULT_CACHE_MAX_SIZE))
    rate_limit_rps: float = field(default_factory=lambda: env_float("STELLAR_RATE_LIMIT_RPS", DEFAULT_RATE_LIMIT_RPS))
    rate_limit_burst: int = field(default_factory=lambda: env_int("STELLAR_RATE_LIMIT_BURST", DEFAULT_RATE_LIMIT_BURST))
    ledger_timeout_sec: float = field(default_factory=lambda: env_float("LEDGER_TIMEOUT_SEC", DEFAULT_LEDGER_TIMEOUT_SEC))
    base_fee: int = field(default_factory=lambda: env_int("STELLAR_BASE_FEE", DEFAULT_BASE_FEE))
    anchor_payment_amount: str = field(
        default_factory=lambda: env_str("ANCHOR_PAYMENT_AMOUNT", DEFAULT_ANCHOR_PAYMENT_AMOUNT)
    )
    new_account_starting_balance: str = field(
        default_factory=lambda: env_str("NEW_ACCOUNT_STARTING_BALANCE", DEFAULT_STARTING_BALANCE)
    )
    stats_cache_ttl_sec: float = field(
        default_factory=lambda: env_float("STATS_CACHE_TTL_SEC", DEFAULT_STATS_CACHE_TTL_SEC)
    )
    expiry_blocks_verification: bool = field(
        default_factory=lambda: env_bool("CERT_EXPIRY_BLOCKS_VERIFICATION", True)
    )
    database_url: str = field(default_factory=lambda: env_str("DATABASE_URL", DEFAULT_DATABASE_URL))

    def __post_init__(self) -> None:
        if self.stellar_network not in KNOWN_NETWORKS:
            raise ValueError(f"STELLAR_NETWORK must be one of {KNOWN_NETWORKS}, got {self.stellar_network!r}")
        missing = [n for n in KNOWN_NETWORKS if not self.horizon_urls.get(n)]
        if missing:
            raise ValueError(f"Horizon URL missing for network(s): {', '.join(missing)}")
        if self.cache_ttl_ms <= 0:
            self.cache_ttl_ms = DEFAULT_CACHE_TTL_MS
        if self.cache_max_size < 1:
            self.cache_max_size = 1
        if self.rate_limit_rps <= 0:
            self.rate_limit_rps = DEFAULT_RATE_LIMIT_RPS
        if self.rate_limit_burst < 1:
            self.rate_limit_burst = 1
        if self.ledger_timeout_sec <= 0:
            self.ledger_timeout_sec = DEFAULT_LEDGER_TIMEOUT_SEC
        if self.stats_cache_ttl_sec < 0:
            self.stats_cache_ttl_sec = 0.0

    @property
    def horizon_url(self) -> str:
        """Horizon URL of the network certificates are anchored to."""
        return self.horizon_urls[self.stellar_network]


def get_settings() -> EngineSettings:
    """Return settings read from the current environment."""
    return EngineSettings()
