import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Dict, Pattern

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # BMC access
    BMC_USERNAME: str = Field("", description="Static BMC username used when no cached credential exists")
    BMC_PASSWORD: str = Field("", description="Static BMC password used when no cached credential exists")
    BMC_SCHEME: str = Field("https", description="Scheme prepended to targets given without one")
    BMC_TIMEOUT: float = Field(15, description="Deadline in seconds for discovery and the pool start")
    BMC_CONNECT_TIMEOUT: float = Field(3, description="TCP connect timeout in seconds")
    BMC_REQUEST_TIMEOUT: float = Field(30, description="Per-request read timeout in seconds")
    BMC_TLS_VERIFY: bool = Field(False, description="Verify BMC TLS certificates")
    BMC_RETRY_MAX: int = Field(2, description="Transport-level retries for connection errors and 5xx")
    BMC_RETRY_WAIT: float = Field(2.0, description="Fixed wait in seconds between retries")
    BMC_REQUEST_DELAY: float = Field(0.1, description="Pacing delay in seconds before every BMC request")
    NOT_FOUND_RETRIES: int = Field(3, description="Retries for a 404 response before giving up")
    POOL_CONCURRENCY: int = Field(1, ge=1, description="Concurrent fetches per device")

    # Vault
    VAULT_ADDRESS: Optional[str] = Field(None, description="Vault server address")
    VAULT_ROLE_ID: Optional[str] = Field(None, description="Vault AppRole role id")
    VAULT_SECRET_ID: Optional[str] = Field(None, description="Vault AppRole secret id")
    VAULT_CA_CERT: Optional[str] = Field(None, description="Path to a CA bundle for verifying Vault TLS")

    # Credential profiles
    CREDENTIAL_PROFILES: Optional[str] = Field(
        None,
        description="YAML or JSON credential profiles. Example: "
        '{"profiles":[{"name":"default","mountPath":"kv2","path":"bmc","userField":"user","passwordField":"password"}]}'
    )
    CREDENTIAL_PROFILES_FILE: Optional[str] = Field(None, description="Path to a YAML or JSON credential profiles file")
    URL_EXTRA_PARAMS: Optional[str] = Field(
        None,
        description="Comma separated param:alias pairs copied from /scrape query params into credential path aliases"
    )

    # Collector excludes
    COLLECTOR_DRIVE_EXCLUDE: Optional[Pattern] = Field(None, description="Regex of drive URLs to skip")
    COLLECTOR_FIRMWARE_EXCLUDE: Optional[Pattern] = Field(None, description="Regex of firmware inventory URLs to skip")

    # Server
    EXPORTER_PORT: int = Field(9533, description="Port the exporter listens on")

    # Logging
    LOG_LEVEL: str = Field("INFO", description="Logging level")

    @field_validator('COLLECTOR_DRIVE_EXCLUDE', 'COLLECTOR_FIRMWARE_EXCLUDE', mode='before')
    @classmethod
    def compile_exclude(cls, value):
        if value is None or isinstance(value, re.Pattern):
            return value
        if not str(value).strip():
            return None
        try:
            return re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regex {value!r}: {e}") from e

    def url_extra_params(self) -> Dict[str, str]:
        """Parse URL_EXTRA_PARAMS into a {query_param: alias} map."""
        mapping: Dict[str, str] = {}
        if not self.URL_EXTRA_PARAMS:
            return mapping
        for pair in self.URL_EXTRA_PARAMS.split(','):
            param, _, alias = pair.strip().partition(':')
            if param:
                mapping[param] = alias or param
        return mapping


settings = Settings()
