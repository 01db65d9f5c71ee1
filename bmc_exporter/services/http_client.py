"""
HTTP Fetch Unit - authenticated, paced and retried requests to a BMC.

BMCs accept very few concurrent sessions and dislike bursts, so every
session keeps a single connection per host and every request is preceded by
a short pacing delay.

Response classification:
- 2xx: body returned
- 404: retried with a fixed wait before failing with HTTPStatusError(404)
- 401: one credential refresh and retry when a secret backend is configured,
  InvalidCredentialError otherwise
- anything else: HTTPStatusError
"""

from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Optional
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from bmc_exporter.services.context import ScrapeContext
from bmc_exporter.services.credentials import Credential, CredentialStore
from bmc_exporter.services.errors import (
    BodyReadError,
    CredentialError,
    CredentialRefreshError,
    HTTPStatusError,
    InvalidCredentialError,
    NetworkError,
)

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)
CHUNK_SIZE = 8192


class FixedWaitRetry(Retry):
    """urllib3 Retry that waits a constant time between attempts."""

    def __init__(self, *args, wait_seconds: float = 2.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.wait_seconds = wait_seconds

    def new(self, **kw):
        retry = super().new(**kw)
        retry.wait_seconds = self.wait_seconds
        return retry

    def get_backoff_time(self) -> float:
        if not self.history:
            return 0
        return self.wait_seconds


def new_session(retry_max: int = 2, retry_wait: float = 2.0, proxy: Optional[str] = None) -> requests.Session:
    """Build a session with one pooled connection per host and fixed-wait retries."""
    retries = FixedWaitRetry(
        total=retry_max,
        connect=retry_max,
        read=retry_max,
        status=retry_max,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset(["GET", "HEAD"]),
        raise_on_status=False,
        wait_seconds=retry_wait,
    )
    adapter = HTTPAdapter(max_retries=retries, pool_connections=1, pool_maxsize=1, pool_block=True)

    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    if proxy:
        session.proxies = {"http": proxy, "https": proxy}
    return session


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def empty_and_close(response: requests.Response):
    """Drain whatever is left of the body so the connection can be reused."""
    try:
        for _ in response.iter_content(chunk_size=CHUNK_SIZE):
            pass
    except requests.exceptions.RequestException as e:
        logger.debug(f"Discarding unread body of {response.url}: {e}")
    finally:
        response.close()


@dataclass(frozen=True)
class RetryPolicy:
    """Stateless retry rules applied by the Fetcher."""
    not_found_retries: int = 3
    wait_seconds: float = 2.0
    pacing_delay: float = 0.1

    def should_retry_not_found(self, attempt: int) -> bool:
        return attempt < self.not_found_retries


class Fetcher:
    """
    Executes GET requests against one BMC on behalf of a scrape.

    Credentials come from the Credential Store when cached, otherwise from
    the static configuration.
    """

    def __init__(self, session: requests.Session, credentials: CredentialStore,
                 static_credential: Credential, context: Optional[ScrapeContext] = None,
                 policy: Optional[RetryPolicy] = None, connect_timeout: float = 3,
                 request_timeout: float = 30, verify: bool = False):
        self.session = session
        self.credentials = credentials
        self.static_credential = static_credential
        self.context = context or ScrapeContext()
        self.policy = policy or RetryPolicy()
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout
        self.verify = verify

    def credential_for(self, host: str) -> Credential:
        return self.credentials.get(host) or self.static_credential

    def fetch(self, url: str, host: str, profile: Optional[str] = None,
              aliases: Optional[Dict[str, str]] = None) -> Callable[[], bytes]:
        """Return a zero-argument callable that performs the request later."""
        return partial(self.execute, url, host, profile, aliases)

    def _timeout(self):
        return (self.connect_timeout, self.context.timeout_for(self.request_timeout))

    def _send(self, method: str, url: str, credential: Optional[Credential], **kwargs) -> requests.Response:
        self.context.check()
        auth = (credential.user, credential.password) if credential else None
        try:
            return self.session.request(
                method,
                url,
                auth=auth,
                timeout=self._timeout(),
                verify=self.verify,
                stream=True,
                **kwargs
            )
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"request to {url} timed out: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"connection to {url} failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"request to {url} failed: {e}") from e

    def _get(self, url: str, credential: Credential) -> requests.Response:
        return self._send("GET", url, credential, headers={"Accept": "application/json"})

    def _read_body(self, response: requests.Response) -> bytes:
        try:
            return response.content
        except requests.exceptions.RequestException as e:
            raise BodyReadError(f"error reading response body from {response.url}: {e}") from e

    def _retry_not_found(self, url: str, credential: Credential, response: requests.Response) -> requests.Response:
        attempt = 0
        while response.status_code == 404 and self.policy.should_retry_not_found(attempt):
            empty_and_close(response)
            self.context.sleep(self.policy.wait_seconds)
            attempt += 1
            logger.debug(f"Retrying {url} after 404, attempt {attempt}")
            response = self._get(url, credential)
        return response

    def _refresh_and_retry(self, url: str, host: str, profile: Optional[str],
                           aliases: Optional[Dict[str, str]], response: requests.Response) -> requests.Response:
        empty_and_close(response)
        self.credentials.invalidate(host)
        try:
            credential = self.credentials.get_credentials(profile, host, aliases)
        except CredentialError as e:
            raise CredentialRefreshError(f"issue retrieving credentials for {host}: {e}") from e
        self.credentials.set(host, credential)
        logger.info(f"Refreshed credentials for {host} after 401 from {url}")

        self.context.sleep(self.policy.wait_seconds)
        return self._get(url, credential)

    def execute(self, url: str, host: str, profile: Optional[str] = None,
                aliases: Optional[Dict[str, str]] = None) -> bytes:
        self.context.sleep(self.policy.pacing_delay)
        credential = self.credential_for(host)
        response = self._get(url, credential)
        try:
            if response.status_code == 404:
                response = self._retry_not_found(url, credential, response)
            elif response.status_code == 401:
                if not self.credentials.has_backend:
                    raise InvalidCredentialError(url)
                response = self._refresh_and_retry(url, host, profile, aliases, response)
                if response.status_code == 401:
                    raise InvalidCredentialError(url)

            if not is_success(response.status_code):
                raise HTTPStatusError(response.status_code, url)
            return self._read_body(response)
        finally:
            empty_and_close(response)

    def post(self, url: str, data: bytes) -> bytes:
        """Paced POST used by the legacy XML API."""
        self.context.sleep(self.policy.pacing_delay)
        response = self._send("POST", url, None, data=data, headers={"Content-Type": "application/xml"})
        try:
            if not is_success(response.status_code):
                raise HTTPStatusError(response.status_code, url)
            return self._read_body(response)
        finally:
            empty_and_close(response)
