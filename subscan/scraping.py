"""HTTP session, result types and helpers shared by the passive sources."""

from __future__ import annotations

import logging
import random
import re
import threading
import time
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Iterator, Sequence, TypeVar
from urllib.parse import unquote_plus, urlparse

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)

MULTIPLE_KEY_PARTS_LENGTH = 2

T = TypeVar("T")

# Certificate checks are disabled on purpose; silence the per-request warning.
warnings.filterwarnings("ignore", message="Unverified HTTPS request")

_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/104.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 12_5) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/15.6 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64; rv:103.0) Gecko/20100101 Firefox/103.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:102.0) Gecko/20100101 Firefox/102.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/103.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 15_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/15.6 Mobile/15E148 Safari/604.1",
)


class ResultType(Enum):
    """Kind of result a source produces."""

    SUBDOMAIN = 0
    ERROR = 1


@dataclass
class Result:
    """A subdomain or an error reported by a source."""

    type: ResultType
    source: str
    value: str = ""
    error: BaseException | None = None


@dataclass(frozen=True)
class BasicAuth:
    """Credentials for an HTTP Authorization header."""

    username: str = ""
    password: str = ""


class UnexpectedStatusError(Exception):
    """Raised when a request answers with a status other than 200."""

    def __init__(self, status_code: int, url: str, response: requests.Response):
        super().__init__(f"unexpected status code {status_code} received from '{url}'")
        self.status_code = status_code
        self.url = url
        self.response = response


class Source(ABC):
    """A passive source of subdomains."""

    name: ClassVar[str] = ""
    is_default: ClassVar[bool] = False
    has_recursive_support: ClassVar[bool] = False
    needs_key: ClassVar[bool] = False

    def __init__(self) -> None:
        self.api_keys: list = []

    @abstractmethod
    def run(self, domain: str, session: Session) -> Iterator[Result]:
        """Yield the results this source finds for the domain."""

    def add_api_keys(self, keys: Sequence[str]) -> None:
        """Store the API keys the source may use."""
        self.api_keys = list(keys)

    def _found(self, value: str) -> Result:
        return Result(ResultType.SUBDOMAIN, self.name, value=value)

    def _failed(self, error: BaseException) -> Result:
        return Result(ResultType.ERROR, self.name, error=error)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class RateLimiter:
    """Allows at most ``rate`` calls of take() per second; unlimited when rate <= 0."""

    def __init__(self, rate: int):
        self.rate = rate
        self._lock = threading.Lock()
        self._tokens = rate
        self._window_start = time.monotonic()

    def take(self) -> None:
        """Block until a request may be sent."""
        if self.rate <= 0:
            return
        with self._lock:
            now = time.monotonic()
            if now - self._window_start >= 1.0:
                self._window_start = now
                self._tokens = self.rate
            if self._tokens <= 0:
                time.sleep(self._window_start + 1.0 - now)
                self._window_start += 1.0
                self._tokens = self.rate
            self._tokens -= 1


def new_subdomain_extractor(domain: str) -> re.Pattern:
    """Build a pattern that finds subdomains of the domain in text."""
    return re.compile(r"[a-zA-Z0-9\*_.-]+\." + domain)


def pick_random(values: Sequence[T], source_name: str) -> T | None:
    """Return a random element, or None when there is none."""
    if not values:
        logger.debug(
            "Cannot use the '%s' source because there was no API key/secret defined for it.",
            source_name,
        )
        return None
    return random.choice(values)


def create_api_keys(keys: Sequence[str], provider: Callable[[str, str], T]) -> list[T]:
    """Turn ``a:b`` keys into provider(a, b); malformed keys are skipped."""
    result = []
    for key in keys:
        parts = key.split(":")
        if len(parts) == MULTIPLE_KEY_PARTS_LENGTH:
            result.append(provider(parts[0], parts[1]))
    return result


class Session:
    """HTTP client, extractor and rate limiter shared by the sources of one domain."""

    def __init__(self, domain: str, proxy: str = "", rate_limit: int = 0, timeout: int = 30):
        self.extractor = new_subdomain_extractor(domain)
        self.timeout = timeout
        self.rate_limiter = RateLimiter(rate_limit)
        self._cancelled = threading.Event()

        self._client = requests.Session()
        self._client.verify = False
        self._client.trust_env = False
        adapter = HTTPAdapter(pool_connections=100, pool_maxsize=100)
        self._client.mount("http://", adapter)
        self._client.mount("https://", adapter)

        if proxy:
            try:
                urlparse(proxy)
            except ValueError:
                logger.warning("Invalid proxy provided: '%s'", proxy)
            else:
                self._client.proxies = {"http": proxy, "https": proxy}

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get(self, url: str, cookies: str = "", headers: dict | None = None) -> requests.Response:
        """Send a GET request with cookies and headers."""
        return self.http_request("GET", url, cookies, headers)

    def simple_get(self, url: str) -> requests.Response:
        """Send a plain GET request."""
        return self.http_request("GET", url)

    def post(
        self, url: str, cookies: str = "", headers: dict | None = None, body=None
    ) -> requests.Response:
        """Send a POST request with cookies, headers and a body."""
        return self.http_request("POST", url, cookies, headers, body)

    def simple_post(self, url: str, content_type: str, body=None) -> requests.Response:
        """Send a POST request with the given content type."""
        return self.http_request("POST", url, "", {"Content-Type": content_type}, body)

    def http_request(
        self,
        method: str,
        url: str,
        cookies: str = "",
        headers: dict | None = None,
        body=None,
        basic_auth: BasicAuth | None = None,
    ) -> requests.Response:
        """Send a request; raise UnexpectedStatusError unless the answer is 200."""
        self._check_cancelled()
        request_headers = {
            "User-Agent": random.choice(_USER_AGENTS),
            "Accept": "*/*",
            "Accept-Language": "en",
            "Connection": "close",
        }
        if cookies:
            request_headers["Cookie"] = cookies
        request_headers.update(headers or {})

        auth = None
        if basic_auth is not None and (basic_auth.username or basic_auth.password):
            auth = (basic_auth.username, basic_auth.password)

        self.rate_limiter.take()
        self._check_cancelled()

        response = self._client.request(
            method,
            url,
            headers=request_headers,
            data=body,
            auth=auth,
            timeout=self.timeout or None,
        )
        if response.status_code != 200:
            readable_url = unquote_plus(url)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Response for failed request against '%s':\n%s", readable_url, response.text
                )
            raise UnexpectedStatusError(response.status_code, readable_url, response)
        return response

    def cancel(self) -> None:
        """Make every further request fail; used when enumeration time runs out."""
        self._cancelled.set()

    def close(self) -> None:
        """Release the connections of the underlying client."""
        self._client.close()

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise TimeoutError("enumeration time exceeded")