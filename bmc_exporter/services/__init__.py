from typing import List
import logging

from bmc_exporter.config import Settings, settings
from .credentials import CredentialProfile, CredentialStore, load_profiles
from .ignored import IgnoreList
from .vault import VaultBackend

logger = logging.getLogger(__name__)


def read_profiles(config: Settings) -> List[CredentialProfile]:
    """Credential profiles from CREDENTIAL_PROFILES, else from CREDENTIAL_PROFILES_FILE."""
    if config.CREDENTIAL_PROFILES:
        return load_profiles(config.CREDENTIAL_PROFILES)
    if config.CREDENTIAL_PROFILES_FILE:
        with open(config.CREDENTIAL_PROFILES_FILE, encoding="utf-8") as f:
            return load_profiles(f.read())
    return []


def build_credential_store(config: Settings) -> CredentialStore:
    backend = None
    if config.VAULT_ADDRESS:
        backend = VaultBackend(
            config.VAULT_ADDRESS,
            config.VAULT_ROLE_ID or "",
            config.VAULT_SECRET_ID or "",
            ca_cert=config.VAULT_CA_CERT,
        )
    profiles = read_profiles(config)
    if backend is not None and not profiles:
        logger.warning("Vault is configured but no credential profiles were loaded")
    return CredentialStore(backend=backend, profiles=profiles)


# Shared across all scrapes
credential_store = build_credential_store(settings)
ignore_list = IgnoreList()
