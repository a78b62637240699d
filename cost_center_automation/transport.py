"""
HTTP transport for the GitHub REST API: retries, backoff, rate limits and pagination.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .retry_policy import (
    MAX_RETRIES,
    RATE_LIMIT_RESET_HEADER,
    backoff_delay,
    is_transient_error,
    rate_limit_delay,
)

ACCEPT_HEADER = "application/vnd.github+json"
USER_AGENT = "cost-center-automation"
API_VERSION = "2022-11-28"

DEFAULT_PER_PAGE = 100
REQUEST_TIMEOUT = 30
MAX_BODY_BYTES = 10 * 1024 * 1024

# Raised by requests before anything goes on the wire
LOCAL_REQUEST_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.InvalidHeader,
)


class GitHubAPIError(Exception):
    """Base class for every error raised by the GitHub client."""
    pass


class TerminalAPIError(GitHubAPIError):
    """A call that will not be retried any further.

    ``status_code`` is None when the last attempt failed below HTTP (the network
    exception is chained as ``__cause__``).
    """

    def __init__(self, status_code: Optional[int], body: str, attempts: int = 1, url: str = ""):
        self.status_code = status_code
        self.body = body
        self.attempts = attempts
        self.url = url
        if status_code is None:
            message = f"request to {url} failed after {attempts} attempt(s): {body}"
        else:
            message = f"GitHub API returned {status_code} for {url} after {attempts} attempt(s): {body}"
        super().__init__(message)


class TransportError(GitHubAPIError):
    """A local failure that says nothing about the remote service (bad URL, bad payload)."""
    pass


class RequestCancelledError(GitHubAPIError):
    """The caller cancelled the operation before the next attempt started."""
    pass


@dataclass(frozen=True)
class APIRequest:
    """A fully built request. Retries re-send exactly these bytes."""

    method: str
    url: str
    body: Optional[bytes] = None

    @classmethod
    def build(cls, method: str, url: str, params: Optional[Dict[str, Any]] = None,
              json_body: Optional[Any] = None) -> "APIRequest":
        if params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(params)}"
        body = json.dumps(json_body).encode("utf-8") if json_body is not None else None
        return cls(method=method.upper(), url=url, body=body)


def create_session(token: Optional[str] = None) -> requests.Session:
    """Create a pooled session carrying the fixed GitHub headers.

    The adapter's urllib3 retry is disabled: GitHubTransport owns the retry loop.
    """
    session = requests.Session()

    retry_strategy = Retry(total=0, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "Accept": ACCEPT_HEADER,
        "User-Agent": USER_AGENT,
        "X-GitHub-Api-Version": API_VERSION,
    })
    if token:
        session.headers["Authorization"] = f"Bearer {token}"

    return session


def _read_body(response, limit: int = MAX_BODY_BYTES) -> bytes:
    """Read at most ``limit`` bytes of a streamed response and release the connection."""
    chunks = []
    size = 0
    try:
        for chunk in response.iter_content(chunk_size=8192):
            if not chunk:
                continue
            remaining = limit - size
            if remaining <= 0:
                break
            chunk = chunk[:remaining]
            chunks.append(chunk)
            size += len(chunk)
    finally:
        response.close()
    return b"".join(chunks)


class GitHubTransport:
    """Executes GitHub API requests with retry, backoff and rate-limit handling.

    One instance is safe to share between threads: the only shared state is the
    session's connection pool. Attempt counters and page cursors live on the stack
    of each call.
    """

    def __init__(self, base_url: str, token: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 max_retries: int = MAX_RETRIES,
                 timeout: float = REQUEST_TIMEOUT,
                 sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else create_session(token)
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    def url(self, path: str) -> str:
        """Resolve an API path against the base URL; absolute URLs pass through."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def execute(self, request: APIRequest, max_attempts: Optional[int] = None,
                cancel_event: Optional[threading.Event] = None) -> Any:
        """Run a request until it succeeds or becomes terminal.

        Args:
            request: The request to send (re-sent unchanged on every attempt)
            max_attempts: Attempt ceiling; defaults to the transport's ``max_retries``
            cancel_event: Checked before each attempt, never during a wait

        Returns:
            The decoded JSON body, or None for an empty 2xx body

        Raises:
            TerminalAPIError: Non-retryable status, exhausted retries, or a fatal
                network failure
            TransportError: Malformed request or undecodable success body
            RequestCancelledError: ``cancel_event`` was set before an attempt
        """
        if max_attempts is None:
            max_attempts = self.max_retries
        max_attempts = max(1, max_attempts)

        attempt = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError(f"{request.method} {request.url} cancelled before attempt {attempt + 1}")

            has_next_attempt = attempt + 1 < max_attempts

            try:
                response = self._send(request)
                status = response.status_code
                headers = response.headers
                body = _read_body(response)
            except LOCAL_REQUEST_ERRORS as e:
                raise TransportError(f"Invalid request {request.method} {request.url}: {e}") from e
            except requests.exceptions.RequestException as e:
                if has_next_attempt and is_transient_error(e):
                    wait = backoff_delay(attempt)
                    self.logger.warning(
                        f"Attempt {attempt + 1}/{max_attempts} {request.method} {request.url} "
                        f"failed: {e}. Retrying in {wait:.1f}s"
                    )
                    self._sleep(wait)
                    attempt += 1
                    continue
                self.logger.error(
                    f"Attempt {attempt + 1}/{max_attempts} {request.method} {request.url} failed: {e}"
                )
                raise TerminalAPIError(None, str(e), attempts=attempt + 1, url=request.url) from e

            if 200 <= status < 300:
                self.logger.debug(
                    f"Attempt {attempt + 1}/{max_attempts} {request.method} {request.url} -> {status}"
                )
                return self._decode(request, status, body)

            body_text = body.decode("utf-8", errors="replace")

            if status == 429 or 500 <= status < 600:
                if has_next_attempt:
                    if status == 429:
                        wait = rate_limit_delay(headers.get(RATE_LIMIT_RESET_HEADER))
                        self.logger.warning(
                            f"Rate limit hit on {request.method} {request.url} "
                            f"(attempt {attempt + 1}/{max_attempts}). Waiting {wait:.1f} seconds..."
                        )
                    else:
                        wait = backoff_delay(attempt)
                        self.logger.warning(
                            f"Attempt {attempt + 1}/{max_attempts} {request.method} {request.url} "
                            f"-> {status}. Retrying in {wait:.1f}s"
                        )
                    self._sleep(wait)
                    attempt += 1
                    continue
                self.logger.error(
                    f"Giving up on {request.method} {request.url} after {attempt + 1} attempt(s): "
                    f"{status} {body_text}"
                )
            else:
                self.logger.debug(
                    f"Attempt {attempt + 1}/{max_attempts} {request.method} {request.url} -> {status} {body_text}"
                )

            raise TerminalAPIError(status, body_text, attempts=attempt + 1, url=request.url)

    def _send(self, request: APIRequest):
        headers = {"Content-Type": "application/json"} if request.body is not None else None
        return self.session.request(
            request.method,
            request.url,
            data=request.body,
            headers=headers,
            timeout=self.timeout,
            stream=True,
        )

    @staticmethod
    def _decode(request: APIRequest, status: int, body: bytes) -> Any:
        if not body.strip():
            return None
        try:
            return json.loads(body)
        except ValueError as e:
            raise TransportError(
                f"Could not decode {status} response from {request.method} {request.url}: {e}"
            ) from e

    def call(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
             json_body: Optional[Any] = None,
             cancel_event: Optional[threading.Event] = None) -> Any:
        """Single-shot operation: build the request and execute it with retries."""
        request = APIRequest.build(method, self.url(path), params=params, json_body=json_body)
        return self.execute(request, cancel_event=cancel_event)

    def list_paged(self, path: str, per_page: int = DEFAULT_PER_PAGE,
                   params: Optional[Dict[str, Any]] = None,
                   items_key: Optional[str] = None,
                   cancel_event: Optional[threading.Event] = None) -> List[Any]:
        """Drain a ``page``/``per_page`` collection into one list.

        Stops on an empty page or on a page shorter than ``per_page``. Each page is
        fetched with the full retry contract; a page that still fails aborts the
        whole listing, so a partial result is never returned.

        Args:
            path: API path of the collection
            per_page: Page size requested from the server
            params: Extra query parameters sent with every page
            items_key: Key holding the items when the payload is an object
                (e.g. ``"seats"``); None when the payload is a bare list
            cancel_event: Checked before every attempt of every page
        """
        url = self.url(path)
        items: List[Any] = []
        page = 1

        while True:
            query = dict(params or {})
            query["page"] = page
            query["per_page"] = per_page
            data = self.execute(APIRequest.build("GET", url, params=query), cancel_event=cancel_event)

            page_items = self._page_items(url, data, items_key)
            if not page_items:
                break

            items.extend(page_items)
            self.logger.debug(f"Fetched page {page} with {len(page_items)} items from {url}")

            if len(page_items) < per_page:
                break
            page += 1

        return items

    @staticmethod
    def _page_items(url: str, data: Any, items_key: Optional[str]) -> List[Any]:
        if data is None:
            return []
        if items_key is not None:
            if not isinstance(data, dict):
                raise TransportError(f"Unexpected response format from {url}: expected object with '{items_key}'")
            data = data.get(items_key) or []
        if not isinstance(data, list):
            raise TransportError(f"Unexpected response format from {url}: {type(data).__name__}")
        return data

    def close(self) -> None:
        self.session.close()
