"""OAuth2 token lifecycle manager for the Miro REST API.

Implements the authorization-code flow and refresh-token rotation:

    manager = OAuth2Manager(client_id, client_secret, redirect_uri)
    url = manager.get_authorization_url()          # send the user here
    await manager.exchange_code_for_token(code)    # from the callback
    token = await manager.ensure_valid_token()     # before every API call

Refresh is lazy: there is no background timer. ``ensure_valid_token()`` checks
the tracked expiry on each call and refreshes once the token is within
``REFRESH_BUFFER_MS`` of expiring.

Refresh is single-flight. Miro rotates the refresh token on every use, so two
racing refresh calls would invalidate each other. The first caller starts one
``asyncio.Task``; every concurrent caller awaits that same task through
``asyncio.shield`` so a cancelled waiter never cancels the refresh for the
others.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Optional
from urllib.parse import urlencode

import httpx

from miro_mcp.core.auth.tokens import Clock, TokenSet, TokenSink, TokenStore, now_ms
from miro_mcp.core.errors import (
    ApiError,
    AuthError,
    AuthReason,
    FailureContext,
    RequestPhase,
    classify,
)

logger = logging.getLogger(__name__)

# Miro OAuth2 endpoints
MIRO_AUTHORIZE_URL = "https://miro.com/oauth/authorize"
MIRO_TOKEN_URL = "https://api.miro.com/v1/oauth/token"
DEFAULT_REDIRECT_URI = "http://localhost:3003/oauth/callback"
DEFAULT_TIMEOUT = 30.0

# Refresh when the access token expires within five minutes
REFRESH_BUFFER_MS = 5 * 60 * 1000

_REAUTHORIZE = "run the authorization flow again to obtain new tokens"


class OAuth2Manager:
    """Owns one Miro credential set and keeps its access token valid.

    Attributes:
        client_id: OAuth2 client id of the Miro app
        redirect_uri: Redirect URI registered for the app
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        *,
        store: Optional[TokenStore] = None,
        sink: Optional[TokenSink] = None,
        authorize_url: str = MIRO_AUTHORIZE_URL,
        token_url: str = MIRO_TOKEN_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Clock = now_ms,
    ):
        """Initialize the token manager.

        Args:
            client_id: Miro app client id.
            client_secret: Miro app client secret. Never logged.
            redirect_uri: Redirect URI registered for the app.
            store: Existing token store. If None, a new one is created around
                ``sink``.
            sink: Persistence backend written on every token mutation.
            authorize_url: Authorization endpoint (overridable for tests).
            token_url: Token endpoint (overridable for tests).
            timeout: Per-request timeout in seconds for token calls.
            http_client: Shared client to use instead of one per call.
            clock: Returns the current time in epoch milliseconds.
        """
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._store = store if store is not None else TokenStore(sink=sink)
        self._authorize_url = authorize_url
        self._token_url = token_url
        self._timeout = timeout
        self._http_client = http_client
        self._clock = clock
        self._refresh_task: Optional["asyncio.Task[TokenSet]"] = None

    # ------------------------------------------------------------------
    # Inspection / seeding
    # ------------------------------------------------------------------

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def token_set(self) -> Optional[TokenSet]:
        return self._store.token_set

    @property
    def token_expires_at(self) -> Optional[int]:
        token_set = self._store.token_set
        return token_set.expires_at if token_set is not None else None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None

    def has_tokens(self) -> bool:
        return self._store.has_tokens()

    def set_tokens_from_object(self, tokens: Mapping[str, Any]) -> TokenSet:
        """Seed the manager with an existing credential.

        Accepts a token-endpoint shaped object (``access_token``,
        ``refresh_token``, ``expires_in``) or one carrying an absolute
        ``expires_at`` in epoch milliseconds. camelCase keys are accepted too.
        Bypasses the exchange flow; the seeded set is persisted.

        A seed with an empty access token and a past ``expires_at`` forces a
        refresh on first use, which is how headless callers start from a
        refresh token alone.
        """

        def pick(*keys: str) -> Any:
            for key in keys:
                if tokens.get(key) is not None:
                    return tokens[key]
            return None

        expires_at = pick("expires_at", "expiresAt")
        if expires_at is None:
            expires_in = pick("expires_in", "expiresIn")
            expires_at = self._clock() + int(float(expires_in or 0) * 1000)

        token_set = TokenSet(
            access_token=str(pick("access_token", "accessToken") or ""),
            refresh_token=str(pick("refresh_token", "refreshToken") or ""),
            expires_at=int(expires_at),
            scope=str(pick("scope") or ""),
            token_type=str(pick("token_type", "tokenType") or "Bearer"),
        )
        logger.debug("Token set seeded manually")
        return self._store.replace(token_set)

    # ------------------------------------------------------------------
    # Authorization-code flow
    # ------------------------------------------------------------------

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        """Build the URL the user visits to authorize the app."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
        }
        if state:
            params["state"] = state
        return f"{self._authorize_url}?{urlencode(params)}"

    async def exchange_code_for_token(self, code: str) -> TokenSet:
        """Exchange an authorization code for a token set.

        Raises:
            ApiError: If the upstream rejects the code or the response is
                missing required fields.
            NetworkError: If the token endpoint is unreachable.
        """
        logger.info("Exchanging authorization code for tokens")
        token_set = await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self._client_secret,
                "redirect_uri": self.redirect_uri,
            },
            RequestPhase.EXCHANGE,
        )
        return self._store.replace(token_set)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def needs_refresh(self) -> bool:
        token_set = self._store.token_set
        if token_set is None:
            return False
        return self._clock() + REFRESH_BUFFER_MS >= token_set.expires_at

    async def ensure_valid_token(self) -> TokenSet:
        """Return a token set whose access token is valid for the next call.

        Raises:
            AuthError: ``revoked`` if there are no tokens or the refresh was
                rejected.
        """
        if self._store.token_set is None:
            raise AuthError(
                AuthReason.REVOKED,
                "No Miro tokens available",
                _REAUTHORIZE,
            )
        if self._refresh_task is not None or self.needs_refresh():
            return await self.refresh()
        return self._store.token_set

    async def refresh(self, stale_access_token: Optional[str] = None) -> TokenSet:
        """Refresh the access token, sharing one in-flight refresh.

        Args:
            stale_access_token: The access token the caller saw rejected. If
                the held token already differs, another caller rotated it and
                no network call is made.

        Raises:
            AuthError: ``revoked`` on a 400/401 from the token endpoint.
        """
        current = self._store.token_set
        if (
            self._refresh_task is None
            and stale_access_token is not None
            and current is not None
            and current.access_token != stale_access_token
        ):
            logger.debug("Access token already rotated; skipping refresh")
            return current

        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_once())
            self._refresh_task.add_done_callback(self._on_refresh_done)
        return await asyncio.shield(self._refresh_task)

    async def _refresh_once(self) -> TokenSet:
        token_set = self._store.token_set
        if token_set is None or not token_set.refresh_token:
            raise AuthError(
                AuthReason.REVOKED,
                "No refresh token available",
                _REAUTHORIZE,
            )
        logger.info("Refreshing Miro access token")
        new_set = await self._request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": token_set.refresh_token,
                "client_id": self.client_id,
                "client_secret": self._client_secret,
            },
            RequestPhase.REFRESH,
        )
        refreshed = self._store.replace(new_set)
        logger.info("Access token refreshed, expires_at=%s", refreshed.expires_at)
        return refreshed

    def _on_refresh_done(self, task: "asyncio.Task[TokenSet]") -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if task.cancelled():
            return
        # Marks the exception retrieved even when every waiter went away
        error = task.exception()
        if error is not None:
            logger.warning("Token refresh failed: %s", type(error).__name__)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                yield client

    async def _request_token(self, form: dict[str, str], phase: RequestPhase) -> TokenSet:
        issued_at = self._clock()
        context = FailureContext(phase=phase, now_ms=issued_at)
        async with self._client() as client:
            try:
                response = await client.post(
                    self._token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                    timeout=self._timeout,
                )
            except httpx.TransportError as e:
                raise classify(e, context) from e

        if response.status_code >= 400:
            raise classify(response, context)

        try:
            return TokenSet.from_token_response(response.json(), issued_at)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            suggestion = (
                _REAUTHORIZE
                if phase is RequestPhase.REFRESH
                else "check credentials in configuration and run the authorization flow again"
            )
            raise ApiError(
                response.status_code,
                f"Token response missing or invalid field: {e}",
                suggestion,
                original_error=e,
            ) from e
