"""
Configuration management for Backend CertAnchor.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for engine configuration.
"""

from backend_certanchor.config.settings import EngineSettings, get_settings  # noqa: F401

__all__ = ["EngineSettings", "get_settings"]
