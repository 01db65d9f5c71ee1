from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from bmc_exporter import __version__
from bmc_exporter.api import ignored, scrape, system
from bmc_exporter.config import settings
from bmc_exporter.log_config import configure_logging
from bmc_exporter.middleware import MetricsMiddleware
from bmc_exporter.models.common import ErrorResponse
from bmc_exporter.services.errors import CredentialError, DiscoveryError, IgnoredHostNotFoundError

logger = logging.getLogger("bmc_exporter.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"BMC Redfish Exporter {__version__} - starting up")
    logger.info(f"Vault: {'enabled' if settings.VAULT_ADDRESS else 'disabled'}, "
                f"pool concurrency: {settings.POOL_CONCURRENCY}")
    yield
    logger.info("BMC Redfish Exporter - shutting down")

app = FastAPI(
    title="BMC Redfish Exporter",
    description="Prometheus exporter for server BMCs speaking Redfish",
    version=__version__,
    lifespan=lifespan
)

# ============================================================================
# Middleware
# ============================================================================

app.add_middleware(MetricsMiddleware)

# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(DiscoveryError)
async def discovery_exception_handler(request: Request, exc: DiscoveryError):
    logger.error(f"Scrape of {request.query_params.get('target')} failed: {exc}")
    return PlainTextResponse(
        f"failed to create chassis exporter - {exc}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )

@app.exception_handler(CredentialError)
async def credential_exception_handler(request: Request, exc: CredentialError):
    logger.error(f"Credential lookup for {request.query_params.get('target')} failed: {exc}")
    return PlainTextResponse(
        f"issue retrieving credentials - {exc}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )

@app.exception_handler(IgnoredHostNotFoundError)
async def ignored_host_exception_handler(request: Request, exc: IgnoredHostNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(error="HOST_NOT_FOUND", detail=str(exc)).model_dump()
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="VALIDATION_ERROR", detail=str(exc)).model_dump()
    )

# ============================================================================
# Routers
# ============================================================================

app.include_router(scrape.router, tags=["Scrape"])
app.include_router(ignored.router, tags=["Ignored"])
app.include_router(system.router, tags=["System"])
