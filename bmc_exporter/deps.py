from bmc_exporter.config import Settings, settings
from bmc_exporter.services import credential_store, ignore_list
from bmc_exporter.services.credentials import CredentialStore
from bmc_exporter.services.ignored import IgnoreList


def get_settings() -> Settings:
    return settings


def get_credential_store() -> CredentialStore:
    return credential_store


def get_ignore_list() -> IgnoreList:
    return ignore_list
