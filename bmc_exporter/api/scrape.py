"""
Scrape API - Prometheus scrape endpoints for BMC devices.

A Prometheus job points at /scrape with the BMC as `target`:

    GET /scrape?target=10.0.0.5&model=DL380&credential_profile=default

/scrape/partial takes the same parameters plus a `components` list and
only fetches the endpoints those components need.
"""

from typing import Dict, Optional, Set
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response

from bmc_exporter.config import Settings
from bmc_exporter.deps import get_credential_store, get_ignore_list, get_settings
from bmc_exporter.exporter.exporter import Component, Exporter, normalize_target, parse_components
from bmc_exporter.log_config import trace_id_var
from bmc_exporter.middleware import record_scrape
from bmc_exporter.services.context import ScrapeContext
from bmc_exporter.services.credentials import Credential, CredentialStore
from bmc_exporter.services.errors import DiscoveryError
from bmc_exporter.services.http_client import Fetcher, RetryPolicy, new_session
from bmc_exporter.services.ignored import IgnoreList

logger = logging.getLogger(__name__)

router = APIRouter()


def url_aliases(request: Request, settings: Settings) -> Dict[str, str]:
    """Copy the URL_EXTRA_PARAMS query params into credential path aliases."""
    aliases = {}
    for param, alias in settings.url_extra_params().items():
        value = request.query_params.get(param)
        if value:
            aliases[alias] = value
    return aliases


def _require(name: str, value: Optional[str]) -> str:
    if not value or not value.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"'{name}' parameter must be specified")
    return value.strip()


def run_scrape(request: Request, target: Optional[str], model: Optional[str], credential_profile: str,
               plugins: str, proxy_host: str, components: Optional[Set[Component]],
               settings: Settings, credentials: CredentialStore, ignore_list: IgnoreList) -> Response:
    target = _require("target", target)
    model = _require("model", model)
    aliases = url_aliases(request, settings)

    try:
        _, host = normalize_target(target, settings.BMC_SCHEME)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    # ignored hosts are answered without touching the secret backend
    if host not in ignore_list:
        credentials.resolve(host, credential_profile or None, aliases)

    context = ScrapeContext(timeout=settings.BMC_TIMEOUT, trace_id=trace_id_var.get())
    session = new_session(settings.BMC_RETRY_MAX, settings.BMC_RETRY_WAIT, proxy=proxy_host or None)
    try:
        fetcher = Fetcher(
            session,
            credentials,
            Credential(settings.BMC_USERNAME, settings.BMC_PASSWORD),
            context=context,
            policy=RetryPolicy(
                not_found_retries=settings.NOT_FOUND_RETRIES,
                wait_seconds=settings.BMC_RETRY_WAIT,
                pacing_delay=settings.BMC_REQUEST_DELAY,
            ),
            connect_timeout=settings.BMC_CONNECT_TIMEOUT,
            request_timeout=settings.BMC_REQUEST_TIMEOUT,
            verify=settings.BMC_TLS_VERIFY,
        )
        try:
            exporter = Exporter(
                target, model, fetcher, ignore_list,
                credential_profile=credential_profile,
                aliases=aliases,
                components=components,
                plugins=[p.strip() for p in plugins.split(",") if p.strip()],
                concurrency=settings.POOL_CONCURRENCY,
                scheme=settings.BMC_SCHEME,
                drive_exclude=settings.COLLECTOR_DRIVE_EXCLUDE,
                firmware_exclude=settings.COLLECTOR_FIRMWARE_EXCLUDE,
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        try:
            outcome = exporter.collect()
        except DiscoveryError:
            record_scrape("failed")
            raise
    finally:
        context.cancel()
        session.close()

    logger.info(f"Scraped {host}: up={int(outcome.status)} tasks={len(outcome.results)}")
    record_scrape(int(outcome.status))
    return Response(content=exporter.render(), media_type=exporter.metrics.content_type())


@router.get("/scrape")
def scrape(
    request: Request,
    target: Optional[str] = Query(None, description="BMC host or URL"),
    model: Optional[str] = Query(None, description="Device model, used as the chassisModel label"),
    credential_profile: str = Query("", description="Credential profile name, the first profile if empty"),
    plugins: str = Query("", description="Comma separated plugins, e.g. nuova"),
    proxy_host: str = Query("", description="HTTP proxy for the BMC requests"),
    settings: Settings = Depends(get_settings),
    credentials: CredentialStore = Depends(get_credential_store),
    ignore_list: IgnoreList = Depends(get_ignore_list),
):
    """Scrape every component of one BMC."""
    return run_scrape(request, target, model, credential_profile, plugins, proxy_host, None,
                      settings, credentials, ignore_list)


@router.get("/scrape/partial")
def scrape_partial(
    request: Request,
    target: Optional[str] = Query(None, description="BMC host or URL"),
    model: Optional[str] = Query(None, description="Device model, used as the chassisModel label"),
    components: str = Query("", description="Comma separated components: " + ",".join(c.value for c in Component)),
    credential_profile: str = Query(""),
    plugins: str = Query(""),
    proxy_host: str = Query(""),
    settings: Settings = Depends(get_settings),
    credentials: CredentialStore = Depends(get_credential_store),
    ignore_list: IgnoreList = Depends(get_ignore_list),
):
    """Scrape only the listed components. Unknown component names are skipped."""
    selected = parse_components(components)
    if not selected:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="no valid components specified")
    return run_scrape(request, target, model, credential_profile, plugins, proxy_host, selected,
                      settings, credentials, ignore_list)
