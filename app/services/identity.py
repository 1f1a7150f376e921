from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Protocol

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from supabase.client import AsyncClient
else:
    AsyncClient = Any

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "bearer "


class IdentityProvider(Protocol):
    async def resolve_user_id(self, auth_token: str | None) -> str | None:
        raise NotImplementedError


def strip_bearer(auth_token: str | None) -> str | None:
    if not auth_token:
        return None
    token = auth_token.strip()
    if token.lower().startswith(_BEARER_PREFIX):
        token = token[len(_BEARER_PREFIX):].strip()
    return token or None


class SupabaseIdentityProvider(IdentityProvider):
    """Resolves a Supabase access token to a user id.

    Anything that does not resolve is treated as an anonymous caller, which is
    a supported path: the quiz is still scored but nothing is persisted.
    """

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def resolve_user_id(self, auth_token: str | None) -> str | None:
        token = strip_bearer(auth_token)
        if token is None:
            return None
        try:
            response = await self._client.auth.get_user(token)
        except Exception as exc:  # pragma: no cover - network layer guard
            logger.warning("Failed to resolve Supabase user from token: %s", exc)
            return None
        user = getattr(response, "user", None)
        user_id = getattr(user, "id", None)
        return str(user_id) if user_id else None


class StaticIdentityProvider(IdentityProvider):
    def __init__(self, tokens: Mapping[str, str] | None = None) -> None:
        self._tokens = dict(tokens or {})

    async def resolve_user_id(self, auth_token: str | None) -> str | None:
        token = strip_bearer(auth_token)
        if token is None:
            return None
        return self._tokens.get(token)
