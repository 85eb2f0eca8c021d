"""
FastAPI server: certificates, verification, statistics, address validation.

Routes are thin: request models check shape, the engine does the work.
Domain errors map to HTTP status codes in one exception handler. Config via
env (see config.settings) when the engine is built by the lifespan hook.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from backend_certanchor.analytics.stats import StatsQuery
from backend_certanchor.api_server.schemas import (
    IssueCertificateBody,
    ValidateAddressBody,
    ValidateAddressesBody,
    as_utc,
)
from backend_certanchor.certanchor_logging import get_logger
from backend_certanchor.core.exceptions import (
    AnchoringFailed,
    CertAnchorError,
    DuplicateCertificate,
    InvalidInput,
    NotFound,
)
from backend_certanchor.engine import CertAnchorEngine, build_engine

logger = get_logger(__name__)

STATUS_BY_ERROR: dict[type[CertAnchorError], int] = {
    InvalidInput: 400,
    NotFound: 404,
    DuplicateCertificate: 409,
    AnchoringFailed: 502,
}


def get_engine(request: Request) -> CertAnchorEngine:
    """Dependency: the app-scoped engine."""
    return request.app.state.engine


# -----------------------------------------------------------------------------
# Certificates
# -----------------------------------------------------------------------------

certificates_router = APIRouter(prefix="/certificates", tags=["certificates"])


@certificates_router.get("/stats")
async def get_stats(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    issuer_name: str | None = None,
    engine: CertAnchorEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Certificate and verification statistics (cached for a few minutes)."""
    query = StatsQuery(start_date=as_utc(start_date), end_date=as_utc(end_date), issuer_name=issuer_name)
    snapshot = await engine.get_statistics(query)
    return snapshot.to_dict()


@certificates_router.get("/verify/{serial}")
async def verify(serial: str, engine: CertAnchorEngine = Depends(get_engine)) -> dict[str, Any]:
    """Verify a certificate by certificate ID or transaction hash. Always records the attempt."""
    result = await engine.verify(serial)
    return result.to_dict()


@certificates_router.get("/verify/{serial}/history")
async def verification_history(serial: str, engine: CertAnchorEngine = Depends(get_engine)) -> list[dict[str, Any]]:
    records = await engine.get_verification_history(serial)
    return [r.to_dict() for r in records]


@certificates_router.post("", status_code=201)
async def issue(body: IssueCertificateBody, engine: CertAnchorEngine = Depends(get_engine)) -> dict[str, Any]:
    """Issue a new certificate anchored to a ledger transaction."""
    certificate = await engine.issue(body.to_request())
    return certificate.to_dict()


@certificates_router.get("")
async def find_all(engine: CertAnchorEngine = Depends(get_engine)) -> list[dict[str, Any]]:
    return [c.to_dict() for c in await engine.find_all()]


@certificates_router.get("/{certificate_pk}")
async def find_one(certificate_pk: str, engine: CertAnchorEngine = Depends(get_engine)) -> dict[str, Any]:
    """Get a certificate by internal ID."""
    certificate = await engine.find_one(certificate_pk)
    return certificate.to_dict()


# -----------------------------------------------------------------------------
# Address validation
# -----------------------------------------------------------------------------

stellar_router = APIRouter(prefix="/stellar", tags=["stellar"])


@stellar_router.post("/validate-address")
async def validate_address(body: ValidateAddressBody, engine: CertAnchorEngine = Depends(get_engine)) -> dict[str, Any]:
    result = await engine.validate_address(body.address, body.network, body.check_exists)
    return result.to_dict()


@stellar_router.post("/validate-addresses")
async def validate_addresses(
    body: ValidateAddressesBody, engine: CertAnchorEngine = Depends(get_engine)
) -> dict[str, Any]:
    result = await engine.validate_bulk(body.addresses, body.network, body.check_exists)
    return result.to_dict()


@stellar_router.delete("/validation-cache", status_code=204)
def clear_validation_cache(engine: CertAnchorEngine = Depends(get_engine)) -> None:
    engine.clear_cache()


@stellar_router.get("/validation-cache/stats")
def validation_cache_stats(engine: CertAnchorEngine = Depends(get_engine)) -> dict[str, Any]:
    return engine.get_cache_stats()


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------


def create_app(engine: CertAnchorEngine | None = None) -> FastAPI:
    """
    Build the FastAPI app. With an engine, the app uses it as-is (tests); without
    one, the lifespan hook builds the production engine from env and closes it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        built = None
        if getattr(app.state, "engine", None) is None:
            built = build_engine()
            app.state.engine = built
        yield
        if built is not None:
            await built.aclose()
            app.state.engine = None
            logger.info("certanchor_engine_closed")

    app = FastAPI(
        title="Backend CertAnchor API",
        description="Issue and verify certificates anchored to the Stellar ledger.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.include_router(certificates_router)
    app.include_router(stellar_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe: API is up."""
        return {"status": "ok"}

    @app.exception_handler(CertAnchorError)
    def certanchor_error_handler(request: Request, exc: CertAnchorError) -> JSONResponse:
        """Consistent JSON error response for domain errors."""
        status = next((s for cls, s in STATUS_BY_ERROR.items() if isinstance(exc, cls)), 500)
        if status >= 500:
            logger.warning("api_domain_error", code=exc.code, error=exc.message, path=request.url.path)
        return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})

    return app


app = create_app()
