"""
System API - health, runtime verbosity, configuration summary and the
exporter's own request metrics.
"""

from typing import Optional
import sys

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from bmc_exporter import __version__
from bmc_exporter.config import Settings
from bmc_exporter.deps import get_credential_store, get_ignore_list, get_settings
from bmc_exporter.log_config import LEVELS, get_verbosity, set_verbosity
from bmc_exporter.middleware import get_metrics_content_type, get_metrics_text
from bmc_exporter.models.common import HealthResponse, InfoResponse, VerbosityResponse
from bmc_exporter.services.credentials import CredentialStore
from bmc_exporter.services.ignored import IgnoreList

router = APIRouter()

# ============================================================================
# Health Check
# ============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="healthy")


# ============================================================================
# Verbosity
# ============================================================================

@router.get("/verbosity", response_model=VerbosityResponse)
async def get_log_verbosity():
    return VerbosityResponse(verbosity=get_verbosity())


@router.put("/verbosity", status_code=status.HTTP_204_NO_CONTENT)
async def put_log_verbosity(v: Optional[str] = Query(None, description="debug, info, warn or error")):
    """Change the log level of the running exporter."""
    if not v:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="'v' parameter must be specified")
    try:
        set_verbosity(v.lower())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# System Information
# ============================================================================

@router.get("/info", response_model=InfoResponse)
async def get_info(
    settings: Settings = Depends(get_settings),
    credentials: CredentialStore = Depends(get_credential_store),
    ignore_list: IgnoreList = Depends(get_ignore_list),
):
    """
    Version and effective configuration.

    **Returns:** exporter and Python versions, whether a secret backend is
    configured, the loaded credential profile names and the non-secret
    settings.
    """
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    return InfoResponse(
        version=__version__,
        python_version=python_version,
        vault_configured=credentials.has_backend,
        credential_profiles=list(credentials.profiles),
        ignored_hosts=len(ignore_list),
        settings={
            "scheme": settings.BMC_SCHEME,
            "timeout": settings.BMC_TIMEOUT,
            "connect_timeout": settings.BMC_CONNECT_TIMEOUT,
            "request_timeout": settings.BMC_REQUEST_TIMEOUT,
            "tls_verify": settings.BMC_TLS_VERIFY,
            "retry_max": settings.BMC_RETRY_MAX,
            "retry_wait": settings.BMC_RETRY_WAIT,
            "request_delay": settings.BMC_REQUEST_DELAY,
            "not_found_retries": settings.NOT_FOUND_RETRIES,
            "pool_concurrency": settings.POOL_CONCURRENCY,
            "verbosity_levels": list(LEVELS),
        },
    )


# ============================================================================
# Exporter Metrics
# ============================================================================

@router.get("/metrics")
async def get_metrics():
    """Request metrics of the exporter itself, in Prometheus text format."""
    return Response(content=get_metrics_text(), media_type=get_metrics_content_type())
