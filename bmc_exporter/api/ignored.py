"""
Ignored hosts API.

Hosts whose BMC kept rejecting credentials are skipped by /scrape. These
endpoints let an operator inspect the list, check whether a host accepts
its credentials again and put it back into rotation.
"""

from typing import List
import logging

from fastapi import APIRouter, Depends

from bmc_exporter.config import Settings
from bmc_exporter.deps import get_credential_store, get_ignore_list, get_settings
from bmc_exporter.models.common import (
    ConnectionTestResponse,
    HostRequest,
    IgnoredDeviceResponse,
    RemoveResponse,
)
from bmc_exporter.services.credentials import Credential, CredentialStore
from bmc_exporter.services.http_client import new_session
from bmc_exporter.services.ignored import IgnoreList

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ignored", response_model=List[IgnoredDeviceResponse])
def list_ignored(ignore_list: IgnoreList = Depends(get_ignore_list)):
    """All hosts currently skipped, sorted by host."""
    return [
        IgnoredDeviceResponse(
            host=device.host,
            endpoint=device.endpoint,
            model=device.model,
            credential_profile=device.credential_profile,
            added_at=device.added_at,
        )
        for device in ignore_list.list()
    ]


@router.post("/ignored/test-conn", response_model=ConnectionTestResponse, response_model_exclude_none=True)
def test_connection(
    body: HostRequest,
    settings: Settings = Depends(get_settings),
    credentials: CredentialStore = Depends(get_credential_store),
    ignore_list: IgnoreList = Depends(get_ignore_list),
):
    """
    Try the Chassis endpoint of an ignored host with freshly resolved credentials.

    **Returns:** `connectionTest` false with the error when the BMC still
    rejects the credentials or cannot be reached. 404 if the host is not
    on the ignored list.
    """
    session = new_session(retry_max=0)
    try:
        result = ignore_list.test_connection(
            body.host,
            credentials,
            session,
            Credential(settings.BMC_USERNAME, settings.BMC_PASSWORD),
            timeout=settings.BMC_REQUEST_TIMEOUT,
            verify=settings.BMC_TLS_VERIFY,
        )
    finally:
        session.close()

    logger.info(f"Connection test for {body.host}: connected={result.connected}")
    return ConnectionTestResponse(host=result.host, connection_test=result.connected, error=result.error)


@router.post("/ignored/remove", response_model=RemoveResponse)
def remove_ignored(body: HostRequest, ignore_list: IgnoreList = Depends(get_ignore_list)):
    """Put a host back into rotation. 404 if it is not on the ignored list."""
    ignore_list.remove_host(body.host)
    return RemoveResponse(host=body.host)
