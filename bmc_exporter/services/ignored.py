"""
Ignore List - hosts excluded from scraping after persistent auth failures.

A host lands here when a BMC keeps answering 401. Scrapes of an ignored
host report up=2 without touching the network until an operator removes
the host.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
import logging
import threading

import requests

from bmc_exporter.services.credentials import Credential, CredentialStore
from bmc_exporter.services.errors import CredentialError, IgnoredHostNotFoundError

logger = logging.getLogger(__name__)


def chassis_endpoint(base_url: str) -> str:
    """Chassis collection URL of a BMC given as a base URL or a bare host (https)."""
    if "://" not in base_url:
        base_url = f"https://{base_url}"
    return f"{base_url.rstrip('/')}/redfish/v1/Chassis/"


@dataclass(frozen=True)
class IgnoredDevice:
    host: str
    endpoint: str
    model: str = ""
    credential_profile: str = ""
    added_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ConnectionTestResult:
    host: str
    connected: bool
    error: Optional[str] = None


class IgnoreList:
    def __init__(self):
        self._lock = threading.Lock()
        self._devices: Dict[str, IgnoredDevice] = {}

    def __contains__(self, host: str) -> bool:
        with self._lock:
            return host in self._devices

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def get(self, host: str) -> Optional[IgnoredDevice]:
        with self._lock:
            return self._devices.get(host)

    def add(self, device: IgnoredDevice):
        with self._lock:
            self._devices[device.host] = device
        logger.info(f"Added host {device.host} to ignored list")

    def remove(self, host: str) -> bool:
        with self._lock:
            removed = self._devices.pop(host, None) is not None
        if removed:
            logger.info(f"Removed host {host} from ignored list")
        return removed

    def list(self) -> List[IgnoredDevice]:
        with self._lock:
            return sorted(self._devices.values(), key=lambda d: d.host)

    def remove_host(self, host: str):
        if not self.remove(host):
            raise IgnoredHostNotFoundError(host)

    def test_connection(self, host: str, credentials: CredentialStore, session: requests.Session,
                        static_credential: Credential, timeout: float = 10,
                        verify: bool = False) -> ConnectionTestResult:
        """
        Check whether an ignored host still rejects its credentials.

        Credentials are re-resolved from the secret backend when one is
        configured. The host stays on the list whatever the result.
        """
        device = self.get(host)
        if device is None:
            raise IgnoredHostNotFoundError(host)

        credential = static_credential
        if credentials.has_backend:
            try:
                credential = credentials.get_credentials(device.credential_profile, host)
            except CredentialError as e:
                logger.error(f"Connection test for {host} could not resolve credentials: {e}")
                return ConnectionTestResult(host=host, connected=False, error=str(e))
            credentials.set(host, credential)

        try:
            response = session.get(
                device.endpoint,
                auth=(credential.user, credential.password),
                headers={"Accept": "application/json"},
                timeout=timeout,
                verify=verify,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Connection test for {host} failed: {e}")
            return ConnectionTestResult(host=host, connected=False, error=str(e))

        try:
            if response.status_code == 401:
                return ConnectionTestResult(host=host, connected=False, error="HTTP status 401")
            return ConnectionTestResult(host=host, connected=True)
        finally:
            response.close()
