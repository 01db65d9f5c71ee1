"""
Error taxonomy for BMC scrapes.

Fetch and discovery failures derive from ScrapeError so the orchestrator can
branch on kind:
- InvalidCredentialError drives Ignore List insertion
- HTTPStatusError carries the status code of a non-2xx response
- NetworkError wraps connection, DNS and timeout failures
- DecodeError stays local to the one task whose body failed to decode
- DiscoveryError is fatal to the whole scrape

Credential lookups raise CredentialError subclasses.
"""

from typing import Optional


class ScrapeError(Exception):
    """Base class for errors raised while scraping a device."""
    pass


class InvalidCredentialError(ScrapeError):
    """The BMC rejected the credentials, even after one refresh."""

    def __init__(self, url: str = ""):
        self.url = url
        super().__init__(f"invalid credentials for {url}" if url else "invalid credentials")


class HTTPStatusError(ScrapeError):
    """A non-2xx response that is not handled by a retry rule."""

    def __init__(self, status_code: int, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP status {status_code}")


class NetworkError(ScrapeError):
    pass


class BodyReadError(ScrapeError):
    pass


class DecodeError(ScrapeError):
    pass


class CredentialRefreshError(ScrapeError):
    """A 401 could not be retried because the secret backend failed."""
    pass


class ScrapeCancelledError(ScrapeError):
    pass


class DiscoveryError(ScrapeError):
    """Bootstrap discovery failed, the device cannot be scraped."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(f"{message} - {cause}" if cause else message)


class CredentialError(Exception):
    """Base class for Credential Store failures."""
    pass


class ProfileNotFoundError(CredentialError):
    pass


class BackendUnavailableError(CredentialError):
    pass


class FieldMissingError(CredentialError):
    pass


class IgnoredHostNotFoundError(KeyError):
    def __init__(self, host: str):
        self.host = host
        super().__init__(host)

    def __str__(self) -> str:
        return f"host {self.host} is not in the ignored list"
