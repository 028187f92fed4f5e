"""
Server-side session records.

One JSON record per session id, stored under "<prefix><session_id>" with
an inactivity TTL that every load pushes forward. A record carries at
most one account binding, at most one admin binding and the CSRF token.
"""

import secrets

from pydantic import BaseModel, ValidationError
from structlog import get_logger

from geoadmin.config import settings
from geoadmin.models.domain import Principal, PrincipalKind
from geoadmin.services.cache_store import KeyValueStore

logger = get_logger(__name__)


class SessionRecord(BaseModel):
    """Everything the server remembers about one browser session."""

    account: Principal | None = None
    admin: Principal | None = None
    csrf_token: str | None = None

    def principal(self, kind: PrincipalKind) -> Principal | None:
        return self.admin if kind == PrincipalKind.ADMIN else self.account

    def bind(self, kind: PrincipalKind, principal: Principal | None) -> None:
        if kind == PrincipalKind.ADMIN:
            self.admin = principal
        else:
            self.account = principal


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionStore:
    """
    Session records on top of a KeyValueStore.

    Store failures propagate as UnavailableError: without its session a
    request cannot be authorized.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int | None = None,
        key_prefix: str | None = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds or settings.session_timeout_seconds
        self.key_prefix = key_prefix if key_prefix is not None else settings.session_key_prefix

    def key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def load(self, session_id: str) -> SessionRecord | None:
        """Fetch a record and extend its lifetime; None if expired, unknown or unreadable."""
        raw = await self.store.get(self.key(session_id))
        if raw is None:
            return None

        try:
            record = SessionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("session_record_corrupt", session_id_prefix=session_id[:8])
            await self.store.delete(self.key(session_id))
            return None

        await self.store.expire(self.key(session_id), self.ttl_seconds)
        return record

    async def save(self, session_id: str, record: SessionRecord) -> None:
        await self.store.set(self.key(session_id), record.model_dump_json(), self.ttl_seconds)

    async def delete(self, session_id: str) -> None:
        await self.store.delete(self.key(session_id))
