"""Shared fixtures for core unit tests.

HTTP is mocked with ``httpx.MockTransport``; handlers receive the real
``httpx.Request`` and return real ``httpx.Response`` objects. Time is driven
by ``FakeClock`` so token expiry and rate-limit resets are deterministic.
"""

from typing import Any, Callable, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from miro_mcp.core.auth import OAuth2Manager, TokenSet
from miro_mcp.core.client import MiroClient

START_MS = 1_700_000_000_000
BOARD_ID = "board123"
TOKEN_PATH = "/v1/oauth/token"


class FakeClock:
    """Callable epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class MemorySink:
    """TokenSink keeping every written token set."""

    def __init__(self, initial: Optional[TokenSet] = None):
        self.initial = initial
        self.writes: list[TokenSet] = []

    def write(self, token_set: TokenSet) -> None:
        self.writes.append(token_set.model_copy())

    def read(self) -> Optional[TokenSet]:
        return self.initial


def token_response(
    access_token: str = "new-access",
    refresh_token: str = "new-refresh",
    expires_in: int = 3600,
    **extra: Any,
) -> httpx.Response:
    body = {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": expires_in,
        "token_type": "bearer",
        "scope": "boards:read boards:write",
        **extra,
    }
    return httpx.Response(200, json=body)


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def bearer_of(request: httpx.Request) -> str:
    return request.headers.get("Authorization", "").removeprefix("Bearer ")


def is_token_call(request: httpx.Request) -> bool:
    return request.url.path == TOKEN_PATH


def make_response(
    status_code: int = 200,
    json_data: Any = None,
    headers: Optional[dict[str, str]] = None,
    text: Optional[str] = None,
) -> httpx.Response:
    """Create a standalone response for classifier tests."""
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, headers=headers)
    return httpx.Response(status_code, text=text or "", headers=headers)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def make_oauth(clock: FakeClock) -> Callable[..., OAuth2Manager]:
    """Build an OAuth2Manager on a mock transport, optionally seeded."""

    def _make(
        handler: Callable[[httpx.Request], Any],
        *,
        expires_in_ms: Optional[int] = 3_600_000,
        access_token: str = "old-access",
        refresh_token: str = "old-refresh",
        **kwargs: Any,
    ) -> OAuth2Manager:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = OAuth2Manager(
            "client-id",
            "client-secret",
            http_client=http,
            clock=clock,
            **kwargs,
        )
        if expires_in_ms is not None:
            manager.set_tokens_from_object(
                {
                    "access_token": access_token,
                    "refresh_token": refresh_token,
                    "expires_at": clock() + expires_in_ms,
                }
            )
        return manager

    return _make


@pytest.fixture
def make_client(clock: FakeClock, make_oauth) -> Callable[..., MiroClient]:
    """Build a MiroClient whose manager shares the same mock transport."""

    def _make(
        handler: Callable[[httpx.Request], Any],
        *,
        expires_in_ms: Optional[int] = 3_600_000,
        **kwargs: Any,
    ) -> MiroClient:
        oauth = make_oauth(handler, expires_in_ms=expires_in_ms)
        return MiroClient(oauth, http_client=oauth._http_client, clock=clock, **kwargs)

    return _make
