"""
Structured logging for Backend CertAnchor.

JSON logs with timestamp, event_type, certificate_id / tx_hash where relevant.
Use get_logger() in all engine modules for aggregation-friendly output.
"""

from backend_certanchor.certanchor_logging.logger import get_logger

__all__ = ["get_logger"]
