"""
Vault secret backend for the Credential Store.

Authenticates with AppRole and reads secrets from a KV engine. A profile
whose mount path is "kv2" is read with the KV v2 API, anything else with
KV v1.
"""

from typing import Any, Dict, Optional
import logging
import threading

import hvac
import requests
from hvac.exceptions import Forbidden, VaultError

from bmc_exporter.services.credentials import CredentialProfile
from bmc_exporter.services.errors import BackendUnavailableError

logger = logging.getLogger(__name__)

KV2_MOUNT = "kv2"


class VaultBackend:
    def __init__(self, address: str, role_id: str, secret_id: str,
                 ca_cert: Optional[str] = None, timeout: int = 10,
                 client: Optional[hvac.Client] = None):
        self.address = address
        self.role_id = role_id
        self.secret_id = secret_id
        self.client = client or hvac.Client(url=address, verify=ca_cert or True, timeout=timeout)
        self._login_lock = threading.Lock()

    def login(self):
        with self._login_lock:
            try:
                self.client.auth.approle.login(role_id=self.role_id, secret_id=self.secret_id)
            except (VaultError, requests.exceptions.RequestException) as e:
                raise BackendUnavailableError(f"vault approle login failed: {e}") from e
        logger.info(f"Authenticated to vault at {self.address}")

    def _read(self, profile: CredentialProfile, path: str) -> Dict[str, Any]:
        if profile.mount_path == KV2_MOUNT:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path, mount_point=profile.mount_path, raise_on_deleted_version=True
            )
            return response['data']['data']
        response = self.client.secrets.kv.v1.read_secret(path=path, mount_point=profile.mount_path)
        return response['data']

    def read_secret(self, profile: CredentialProfile, path: str) -> Dict[str, Any]:
        if not self.client.token:
            self.login()
        try:
            try:
                return self._read(profile, path)
            except Forbidden:
                logger.info("Vault token rejected, logging in again")
                self.login()
                return self._read(profile, path)
        except (VaultError, requests.exceptions.RequestException) as e:
            raise BackendUnavailableError(f"failed to read secret {path} from vault: {e}") from e
        except (KeyError, TypeError) as e:
            raise BackendUnavailableError(f"unexpected vault response for {path}") from e
