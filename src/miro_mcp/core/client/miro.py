"""Async client for the Miro REST API v2.

Every call resolves a valid access token through ``OAuth2Manager`` first, so
callers never deal with expiry themselves:

    async with MiroClient.from_config(get_config()) as client:
        items = await client.list_items(board_id, item_type="sticky_note")

Retry policy:
    - 401 on a resource call: one forced refresh, then one retry. A second
      401 means the grant is gone (``AuthError(revoked)``).
    - 429: never retried; raised as ``RateLimitedError`` with the delay the
      upstream asked for.
    - Timeouts and connection failures: raised as ``NetworkError``.

Rate-limit headers are recorded on every response, successful or not, and are
exposed through ``get_rate_limit_status()``.
"""

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

import httpx

from miro_mcp.core.auth.oauth import DEFAULT_TIMEOUT, OAuth2Manager
from miro_mcp.core.auth.tokens import Clock, TokenSink, now_ms
from miro_mcp.core.client.builders import build_payload, get_schema
from miro_mcp.core.client.rate_limit import (
    DEFAULT_RATE_LIMIT_THRESHOLD,
    RateLimitStatus,
    RateLimitTracker,
)
from miro_mcp.core.errors import ApiError, FailureContext, RequestPhase, classify
from miro_mcp.core.formatting import (
    FormatLevel,
    OutputFormat,
    encode_compact,
    escape_field,
    filter_entities,
    filter_entity,
    filter_groups,
    plural,
)
from miro_mcp.core.pagination import DEFAULT_PAGE_SIZE, collect_offset_pages, collect_pages

if TYPE_CHECKING:
    from miro_mcp.config.settings import MiroConfig

logger = logging.getLogger(__name__)

MIRO_API_BASE_URL = "https://api.miro.com/v2"

# Item kinds fetched individually by sync_board, in output order
SYNC_ITEM_KINDS = (
    "frame",
    "sticky_note",
    "shape",
    "text",
    "card",
    "app_card",
    "image",
    "document",
    "embed",
)

Formatted = Union[list[dict[str, Any]], dict[str, Any], str]


class MiroClient:
    """Authenticated Miro REST client with result shaping.

    Attributes:
        base_url: API root, ``https://api.miro.com/v2`` unless overridden
        format_level: Default verbosity for list/search/sync results
        output_format: Default output shape for list/search/sync results
    """

    def __init__(
        self,
        oauth: OAuth2Manager,
        *,
        base_url: str = MIRO_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        rate_limit_threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD,
        page_size: int = DEFAULT_PAGE_SIZE,
        format_level: FormatLevel = FormatLevel.MINIMAL,
        output_format: OutputFormat = OutputFormat.JSON,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Clock = now_ms,
    ):
        self._oauth = oauth
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.page_size = page_size
        self.format_level = format_level
        self.output_format = output_format
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._clock = clock
        self._rate_limit = RateLimitTracker(threshold=rate_limit_threshold, now_ms=clock())

    @classmethod
    def from_config(
        cls,
        config: "MiroConfig",
        *,
        sink: Optional[TokenSink] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "MiroClient":
        """Build a manager and client from configuration.

        Seed tokens from the configuration are applied only when the sink
        did not already hold a token set.
        """
        shared = http_client if http_client is not None else httpx.AsyncClient(timeout=config.request_timeout)
        oauth = OAuth2Manager(
            config.client_id,
            config.client_secret,
            config.redirect_uri,
            sink=sink,
            timeout=config.request_timeout,
            http_client=shared,
        )
        seed = config.seed_tokens()
        if seed is not None and not oauth.has_tokens():
            oauth.set_tokens_from_object(seed)

        client = cls(
            oauth,
            base_url=config.api_base_url,
            timeout=config.request_timeout,
            rate_limit_threshold=config.rate_limit_threshold,
            page_size=config.page_size,
            format_level=config.format_level,
            output_format=config.output_format,
            http_client=shared,
        )
        client._owns_client = http_client is None
        return client

    @property
    def oauth(self) -> OAuth2Manager:
        return self._oauth

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "MiroClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _context(self, phase: RequestPhase) -> FailureContext:
        return FailureContext(
            phase=phase,
            token_expires_at=self._oauth.token_expires_at,
            now_ms=self._clock(),
        )

    async def _send(
        self,
        method: str,
        path: str,
        access_token: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            response = await self._http.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TransportError as e:
            raise classify(e, self._context(RequestPhase.RESOURCE)) from e

        self._rate_limit.update(response.headers, now_ms=self._clock())
        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Issue one authenticated call and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to ``base_url`` (``/boards/{id}/items``).
            json: Request body.
            params: Query parameters.

        Returns:
            The decoded body, or None for 204 / empty responses.

        Raises:
            DiagnosticError: Any failure, already classified.
        """
        token_set = await self._oauth.ensure_valid_token()
        # TokenStore rewrites the set in place; keep the string that was sent.
        sent_token = token_set.access_token
        response = await self._send(method, path, sent_token, json=json, params=params)

        if response.status_code == 401:
            logger.info("Access token rejected for %s %s; refreshing and retrying once", method, path)
            token_set = await self._oauth.refresh(stale_access_token=sent_token)
            response = await self._send(method, path, token_set.access_token, json=json, params=params)
            if response.status_code >= 400:
                raise classify(response, self._context(RequestPhase.RETRY))
        elif response.status_code >= 400:
            raise classify(response, self._context(RequestPhase.RESOURCE))

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                response.status_code,
                "Response body is not valid JSON",
                "the Miro API returned an unexpected payload; retry later",
                original_error=e,
            ) from e

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self._rate_limit.snapshot()

    @property
    def rate_limit_threshold(self) -> int:
        return self._rate_limit.threshold

    @rate_limit_threshold.setter
    def rate_limit_threshold(self, value: int) -> None:
        self._rate_limit.threshold = value

    async def paginate(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        max_items: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Follow the ``cursor`` of a list endpoint and return all items."""

        async def fetch(query: dict[str, Any]) -> Any:
            return await self.request("GET", path, params=query)

        return await collect_pages(
            fetch,
            dict(params or {}),
            max_items=max_items,
            page_size=page_size if page_size is not None else self.page_size,
        )

    # ------------------------------------------------------------------
    # Result shaping
    # ------------------------------------------------------------------

    def _shape(
        self,
        entities: list[dict[str, Any]],
        level: Union[str, FormatLevel, None],
        output: Union[str, OutputFormat, None],
        label: str = "items",
    ) -> Formatted:
        output = OutputFormat.parse(output if output is not None else self.output_format)
        level = FormatLevel.parse(level if level is not None else self.format_level)
        if output is OutputFormat.COMPACT:
            return encode_compact(entities, label=label)
        return filter_entities(entities, level)

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    async def verify_auth(self) -> dict[str, Any]:
        """Check that the held credential can read boards.

        Returns:
            ``{"valid": True, "expires_at": <ms>}`` on success.

        Raises:
            DiagnosticError: If the credential is rejected.
        """
        await self.request("GET", "/boards", params={"limit": 1})
        return {"valid": True, "expires_at": self._oauth.token_expires_at}

    async def list_boards(
        self,
        query: Optional[str] = None,
        *,
        max_items: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if query:
            params["query"] = query

        async def fetch(page: dict[str, Any]) -> Any:
            return await self.request("GET", "/boards", params=page)

        return await collect_offset_pages(
            fetch,
            params,
            max_items=max_items,
            page_size=page_size if page_size is not None else self.page_size,
        )

    async def get_board(self, board_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/boards/{board_id}")

    async def create_board(self, name: str, description: Optional[str] = None) -> dict[str, Any]:
        body: dict[str, Any] = {"name": name}
        if description is not None:
            body["description"] = description
        board = await self.request("POST", "/boards", json=body)
        logger.info("Created board %s", board.get("id") if board else None)
        return board

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def list_items(
        self,
        board_id: str,
        item_type: Optional[str] = None,
        level: Union[str, FormatLevel, None] = None,
        output: Union[str, OutputFormat, None] = None,
        *,
        max_items: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Formatted:
        params = {"type": item_type} if item_type else {}
        items = await self.paginate(
            f"/boards/{board_id}/items",
            params,
            max_items=max_items,
            page_size=page_size,
        )
        return self._shape(items, level, output)

    async def get_item(
        self,
        board_id: str,
        item_id: str,
        level: Union[str, FormatLevel, None] = FormatLevel.FULL,
    ) -> dict[str, Any]:
        item = await self.request("GET", f"/boards/{board_id}/items/{item_id}")
        return filter_entity(item or {}, level)

    async def list_connectors(
        self,
        board_id: str,
        level: Union[str, FormatLevel, None] = None,
        output: Union[str, OutputFormat, None] = None,
        *,
        max_items: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Formatted:
        connectors = await self.paginate(
            f"/boards/{board_id}/connectors",
            max_items=max_items,
            page_size=page_size,
        )
        return self._shape(connectors, level, output, label="connectors")

    async def search_items(
        self,
        board_id: str,
        query: str,
        item_type: Optional[str] = None,
        level: Union[str, FormatLevel, None] = None,
        output: Union[str, OutputFormat, None] = None,
    ) -> Formatted:
        """Case-insensitive substring match on ``data.content`` or ``data.title``.

        Matching is done client-side over every item of the board (or of one
        type), preserving upstream order.
        """
        params = {"type": item_type} if item_type else {}
        items = await self.paginate(f"/boards/{board_id}/items", params)
        needle = query.lower()

        def matches(item: Mapping[str, Any]) -> bool:
            data = item.get("data") or {}
            return any(
                isinstance(data.get(key), str) and needle in data[key].lower()
                for key in ("content", "title")
            )

        found = [item for item in items if matches(item)]
        logger.debug("Search %r matched %d of %d items", query, len(found), len(items))
        return self._shape(found, level, output)

    async def delete_item(self, board_id: str, item_id: str) -> None:
        await self.request("DELETE", f"/boards/{board_id}/items/{item_id}")
        logger.info("Deleted item %s from board %s", item_id, board_id)

    async def create_item(self, board_id: str, kind: str, **options: Any) -> dict[str, Any]:
        """Create an item of *kind* from caller options.

        Raises:
            ValidationError: Before any network call if the options cannot be
                encoded for the kind.
        """
        payload = build_payload(kind, options)
        endpoint = get_schema(kind).endpoint
        return await self.request("POST", f"/boards/{board_id}/{endpoint}", json=payload)

    async def update_item(self, board_id: str, kind: str, item_id: str, **options: Any) -> dict[str, Any]:
        payload = build_payload(kind, options, partial=True)
        endpoint = get_schema(kind).endpoint
        return await self.request("PATCH", f"/boards/{board_id}/{endpoint}/{item_id}", json=payload)

    async def create_sticky_note(self, board_id: str, content: str, **options: Any) -> dict[str, Any]:
        return await self.create_item(board_id, "sticky_note", content=content, **options)

    async def create_shape(self, board_id: str, shape: str = "rectangle", **options: Any) -> dict[str, Any]:
        return await self.create_item(board_id, "shape", shape=shape, **options)

    async def create_text(self, board_id: str, content: str, **options: Any) -> dict[str, Any]:
        return await self.create_item(board_id, "text", content=content, **options)

    async def create_frame(self, board_id: str, title: Optional[str] = None, **options: Any) -> dict[str, Any]:
        return await self.create_item(board_id, "frame", title=title, **options)

    async def create_connector(
        self,
        board_id: str,
        start_item_id: str,
        end_item_id: str,
        **options: Any,
    ) -> dict[str, Any]:
        return await self.create_item(
            board_id,
            "connector",
            start_item_id=start_item_id,
            end_item_id=end_item_id,
            **options,
        )

    async def update_connector(self, board_id: str, connector_id: str, **options: Any) -> dict[str, Any]:
        return await self.update_item(board_id, "connector", connector_id, **options)

    # ------------------------------------------------------------------
    # Whole-board sync
    # ------------------------------------------------------------------

    async def sync_board(
        self,
        board_id: str,
        level: Union[str, FormatLevel, None] = None,
        output: Union[str, OutputFormat, None] = None,
    ) -> Union[dict[str, Any], str]:
        """Fetch the board, its items grouped by kind, and its connectors.

        JSON output::

            {"board": {...}, "itemCount": 5,
             "items": {"frames": [...], "sticky_notes": [...], ..., "connectors": [...]}}

        Compact output uses the header
        ``# board:<id> "<name>" mod:<modifiedAt> count:<n>`` with one section
        per non-empty kind.
        """
        output = OutputFormat.parse(output if output is not None else self.output_format)
        level = FormatLevel.parse(level if level is not None else self.format_level)

        board = await self.get_board(board_id) or {}
        groups: dict[str, list[dict[str, Any]]] = {}
        for kind in SYNC_ITEM_KINDS:
            groups[kind] = await self.paginate(f"/boards/{board_id}/items", {"type": kind})
        groups["connector"] = await self.paginate(f"/boards/{board_id}/connectors")
        count = sum(len(entities) for entities in groups.values())
        logger.debug("Synced board %s: %d entities", board_id, count)

        if output is OutputFormat.COMPACT:
            header = (
                f'board:{escape_field(board.get("id", board_id))} '
                f'"{escape_field(board.get("name", ""))}" '
                f'mod:{escape_field(board.get("modifiedAt", ""))}'
            )
            return encode_compact(groups, header=header)

        return {
            "board": filter_entity({"type": "board", **board}, level),
            "itemCount": count,
            "items": {plural(kind): entities for kind, entities in filter_groups(groups, level).items()},
        }
