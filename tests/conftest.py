"""Shared fixtures: an in-process fake of requests.Session and a recording sleep."""

import json
from types import SimpleNamespace
from urllib.parse import parse_qs, urlsplit

import pytest
from requests.structures import CaseInsensitiveDict

from cost_center_automation.github_api import GitHubCopilotManager
from cost_center_automation.transport import GitHubTransport

BASE_URL = "https://api.github.com"
ENTERPRISE = "test-ent"


class FakeResponse:
    """Just enough of requests.Response for the transport: status, headers, streamed body."""

    def __init__(self, status_code=200, json_body=None, text=None, headers=None, stream_error=None):
        self.status_code = status_code
        if text is not None:
            self._content = text.encode("utf-8")
        elif json_body is not None:
            self._content = json.dumps(json_body).encode("utf-8")
        else:
            self._content = b""
        self.headers = CaseInsensitiveDict(headers or {})
        self.stream_error = stream_error
        self.closed = False

    def iter_content(self, chunk_size=1):
        if self.stream_error is not None:
            raise self.stream_error
        for i in range(0, len(self._content), chunk_size):
            yield self._content[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Serves queued responses (or exceptions) or delegates to a handler, recording every call."""

    def __init__(self, responses=None, handler=None):
        self.queue = list(responses or [])
        self.handler = handler
        self.calls = []
        self.headers = {}
        self.closed = False

    def request(self, method, url, data=None, headers=None, timeout=None, stream=False):
        self.calls.append(SimpleNamespace(method=method, url=url, data=data, headers=headers or {},
                                          timeout=timeout, stream=stream))
        if self.handler is not None:
            outcome = self.handler(method, url, data)
        else:
            outcome = self.queue.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


class Router:
    """Handler keyed by (method, path). The last response of a route repeats."""

    def __init__(self):
        self.routes = {}

    def add(self, method, path, *responses):
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def __call__(self, method, url, data):
        path = urlsplit(url).path
        queue = self.routes.get((method, path))
        if not queue:
            return FakeResponse(404, text=f"no route for {method} {path}")
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]


def query_of(call):
    """Query parameters of a recorded call as a flat dict."""
    return {k: v[0] for k, v in parse_qs(urlsplit(call.url).query).items()}


def body_of(call):
    return json.loads(call.data) if call.data is not None else None


def enterprise_path(path):
    return f"/enterprises/{ENTERPRISE}{path}"


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_transport(sleeps):
    def factory(responses=None, handler=None, max_retries=3):
        session = FakeSession(responses=responses, handler=handler)
        return GitHubTransport(BASE_URL, session=session, max_retries=max_retries, sleep=sleeps.append)
    return factory


@pytest.fixture
def github_config():
    return SimpleNamespace(
        github_enterprise=ENTERPRISE,
        github_api_base_url=BASE_URL,
        github_token="test-token",
    )


@pytest.fixture
def router():
    return Router()


@pytest.fixture
def manager(github_config, make_transport, router):
    """GitHubCopilotManager wired to a Router-backed fake session."""
    return GitHubCopilotManager(github_config, transport=make_transport(handler=router))
