"""Token set model and in-memory token store."""

import logging
import time
from typing import Any, Callable, Mapping, Optional, Protocol

from pydantic import BaseModel, Field

from miro_mcp.core.errors.diagnostics import UnknownError

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class TokenSet(BaseModel):
    """OAuth2 credential for one Miro user/team.

    ``expires_at`` is absolute (epoch milliseconds). The access token is never
    considered valid at or past that instant.
    """

    access_token: str
    refresh_token: str
    expires_at: int
    scope: str = ""
    token_type: str = "Bearer"
    user_id: Optional[str] = None
    team_id: Optional[str] = None

    @classmethod
    def from_token_response(cls, data: Mapping[str, Any], issued_at_ms: int) -> "TokenSet":
        """Build a token set from a token-endpoint response.

        Raises:
            KeyError: If ``access_token``, ``refresh_token`` or ``expires_in``
                is missing.
            ValueError: If ``expires_in`` is not numeric.
        """
        for key in ("access_token", "refresh_token", "expires_in"):
            if data.get(key) in (None, ""):
                raise KeyError(key)
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_at=issued_at_ms + int(float(data["expires_in"]) * 1000),
            scope=str(data.get("scope") or ""),
            token_type=str(data.get("token_type") or "Bearer"),
            user_id=_optional_str(data.get("user_id")),
            team_id=_optional_str(data.get("team_id")),
        )

    def is_expired(self, at_ms: int) -> bool:
        return at_ms >= self.expires_at

    def __repr__(self) -> str:
        # Never render token values
        return f"TokenSet(expires_at={self.expires_at}, scope={self.scope!r})"

    __str__ = __repr__


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class TokenSink(Protocol):
    """Persistence backend for a token set (file, env, keychain...)."""

    def write(self, token_set: TokenSet) -> None: ...

    def read(self) -> Optional[TokenSet]: ...


class TokenStore:
    """Holds the current token set and persists every mutation.

    The store owns exactly one credential. ``replace()`` overwrites every
    field of the held token set in place, so references handed out earlier
    observe the rotated values; the refresh token is always overwritten,
    never merged.
    """

    def __init__(
        self,
        token_set: Optional[TokenSet] = None,
        sink: Optional[TokenSink] = None,
    ):
        self._sink = sink
        self._token_set = token_set
        if self._token_set is None and sink is not None:
            self._token_set = sink.read()
            if self._token_set is not None:
                logger.debug("Loaded persisted token set")

    @property
    def token_set(self) -> Optional[TokenSet]:
        return self._token_set

    @property
    def sink(self) -> Optional[TokenSink]:
        return self._sink

    def has_tokens(self) -> bool:
        return self._token_set is not None and bool(
            self._token_set.access_token or self._token_set.refresh_token
        )

    def replace(self, new: TokenSet) -> TokenSet:
        """Overwrite the held token set with *new* and persist it."""
        if self._token_set is None:
            self._token_set = new.model_copy()
        else:
            for name in TokenSet.model_fields:
                setattr(self._token_set, name, getattr(new, name))
        self.persist()
        return self._token_set

    def persist(self) -> None:
        """Write the current token set to the sink, if one is configured."""
        if self._sink is None or self._token_set is None:
            return
        try:
            self._sink.write(self._token_set)
        except Exception as e:
            logger.error("Failed to persist token set: %s", type(e).__name__)
            raise UnknownError(
                f"Failed to persist token set: {type(e).__name__}",
                "check the token persistence backend (storage path, permissions, free space)",
                original_error=e,
            ) from e
