"""
Credential Store - per-host BMC credentials backed by a secret backend.

The cache is shared by every concurrent scrape. Entries are filled lazily
from the backend on a miss and evicted when a BMC answers 401.

Profiles describe where a secret lives in the backend:

profiles:
  - name: default
    mountPath: kv2
    path: bmc/%site%
    userField: user
    passwordField: password
    secretName: ""
    userName: ""

`%alias%` tokens in `path` are filled from per-scrape alias values.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol
import logging
import threading

import yaml

from bmc_exporter.services.errors import (
    BackendUnavailableError,
    CredentialError,
    FieldMissingError,
    ProfileNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    user: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class CredentialProfile:
    """Where and how to read a credential from the secret backend."""
    name: str
    mount_path: str
    path: str = ""
    user_field: str = "user"
    password_field: str = "password"
    secret_name: str = ""
    static_username: str = ""

    def resolve_path(self, aliases: Optional[Dict[str, str]] = None) -> str:
        path = self.path
        for alias, value in (aliases or {}).items():
            path = path.replace(f"%{alias}%", value)
        return path

    def secret_path(self, target: str, aliases: Optional[Dict[str, str]] = None) -> str:
        path = self.resolve_path(aliases).strip('/')
        leaf = self.secret_name or target
        return f"{path}/{leaf}" if path else leaf


class SecretBackend(Protocol):
    def read_secret(self, profile: CredentialProfile, path: str) -> Dict[str, Any]:
        ...


def load_profiles(text: str) -> List[CredentialProfile]:
    """Parse YAML or JSON profile configuration."""
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise CredentialError(f"invalid credential profiles: {e}") from e

    entries = data.get('profiles', []) if isinstance(data, dict) else data
    profiles = []
    for entry in entries or []:
        if not isinstance(entry, dict) or not entry.get('name'):
            logger.warning(f"Skipping invalid credential profile: {entry}")
            continue
        profiles.append(CredentialProfile(
            name=entry['name'],
            mount_path=entry.get('mountPath', ''),
            path=entry.get('path', ''),
            user_field=entry.get('userField') or 'user',
            password_field=entry.get('passwordField') or 'password',
            secret_name=entry.get('secretName') or '',
            static_username=entry.get('userName') or '',
        ))
    return profiles


class CredentialStore:
    """
    Thread-safe host -> Credential cache with backend lookups.

    The lock only guards the dict; backend calls run outside of it.
    """

    def __init__(self, backend: Optional[SecretBackend] = None,
                 profiles: Optional[List[CredentialProfile]] = None):
        self._lock = threading.Lock()
        self._creds: Dict[str, Credential] = {}
        self.backend = backend
        self.profiles: Dict[str, CredentialProfile] = {p.name: p for p in profiles or []}
        self.default_profile: Optional[CredentialProfile] = profiles[0] if profiles else None

    @property
    def has_backend(self) -> bool:
        return self.backend is not None

    def get(self, host: str) -> Optional[Credential]:
        with self._lock:
            return self._creds.get(host)

    def set(self, host: str, credential: Credential):
        with self._lock:
            self._creds[host] = credential

    def invalidate(self, host: str):
        with self._lock:
            self._creds.pop(host, None)

    def profile(self, name: Optional[str] = None) -> CredentialProfile:
        if not self.profiles:
            raise ProfileNotFoundError("no credential profiles configured")
        if not name:
            return self.default_profile
        if name not in self.profiles:
            raise ProfileNotFoundError(f'profile "{name}" not found')
        return self.profiles[name]

    def get_credentials(self, profile_name: Optional[str], host: str,
                        aliases: Optional[Dict[str, str]] = None) -> Credential:
        """Read a fresh credential for host from the secret backend."""
        if self.backend is None:
            raise BackendUnavailableError("secret backend not configured")

        profile = self.profile(profile_name)
        path = profile.secret_path(host, aliases)
        logger.debug(f"Reading credentials for {host} from {profile.mount_path}/{path}")

        secret = self.backend.read_secret(profile, path)

        if profile.static_username:
            user = profile.static_username
        else:
            user = secret.get(profile.user_field)
            if not user:
                raise FieldMissingError(f'user field "{profile.user_field}" missing from secret {path}')

        password = secret.get(profile.password_field)
        if not password:
            raise FieldMissingError(f'password field "{profile.password_field}" missing from secret {path}')

        return Credential(user=str(user), password=str(password))

    def resolve(self, host: str, profile_name: Optional[str] = None,
                aliases: Optional[Dict[str, str]] = None) -> Optional[Credential]:
        """Return the cached credential, fetching and caching it on a miss."""
        credential = self.get(host)
        if credential is not None or self.backend is None:
            return credential

        credential = self.get_credentials(profile_name, host, aliases)
        self.set(host, credential)
        logger.info(f"Cached credentials for {host}")
        return credential
