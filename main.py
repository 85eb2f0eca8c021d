"""
Main entrypoint: FastAPI server for certificate issuance and verification.

The engine (stores, Horizon gateway, caches) is built by the app lifespan from
env: STELLAR_NETWORK, STELLAR_ISSUER_SECRET_KEY, DATABASE_URL, API_HOST, API_PORT, etc.

Equivalent: uvicorn backend_certanchor.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_certanchor.certanchor_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    from backend_certanchor.config.env import load_certanchor_env

    load_certanchor_env()
    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")

    from backend_certanchor.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=api_host, port=api_port)
    uvicorn.run(app, host=api_host, port=api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
