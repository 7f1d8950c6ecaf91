"""Bearer token persistence."""
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fieldsync.offline.kv_store import KeyValueStore

ACCESS_KEY = "auth:access_token"
REFRESH_KEY = "auth:refresh_token"
EXPIRES_AT_KEY = "auth:access_expires_at"

# Treat the access token as expired slightly early.
EXPIRY_SKEW_SECONDS = 15


@dataclass
class Tokens:
    access: Optional[str] = None
    refresh: Optional[str] = None
    expires_at: Optional[float] = None


class TokenStore:
    """Access/refresh tokens kept in the device key/value store."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def save(self, payload: Mapping[str, Any]) -> None:
        """Store tokens from a login/refresh response (``access_token``, ``refresh_token``, ``expires_in``)."""
        access = payload.get("access_token")
        if access:
            await self.store.set(ACCESS_KEY, str(access))
        refresh = payload.get("refresh_token")
        if refresh:
            await self.store.set(REFRESH_KEY, str(refresh))
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
            await self.store.set(EXPIRES_AT_KEY, str(time.time() + float(expires_in)))

    async def get(self) -> Tokens:
        expires_at = await self.store.get(EXPIRES_AT_KEY)
        try:
            expires = float(expires_at) if expires_at else None
        except ValueError:
            expires = None
        return Tokens(
            access=await self.store.get(ACCESS_KEY),
            refresh=await self.store.get(REFRESH_KEY),
            expires_at=expires,
        )

    async def clear(self) -> None:
        for key in (ACCESS_KEY, REFRESH_KEY, EXPIRES_AT_KEY):
            await self.store.delete(key)

    async def is_access_expired(self, now: Optional[float] = None) -> bool:
        tokens = await self.get()
        if tokens.expires_at is None:
            return True
        now = time.time() if now is None else now
        return now > tokens.expires_at - EXPIRY_SKEW_SECONDS
