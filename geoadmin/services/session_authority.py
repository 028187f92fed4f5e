"""
Session Authority - authentication and CSRF for one request.

Two principal kinds, account and admin, share one session record and are
independent: logging in or out as one never touches the other. Logging in
as an admin rotates the session id so a pre-login id cannot be reused.

SECURITY:
- Unknown username and wrong password are indistinguishable to callers.
- CSRF tokens are compared in constant time and only validate inside the
  session that issued them.
- A session id sent by the client is never adopted for a new record; the
  first write always mints a fresh id.
"""

import hmac
import secrets

from fastapi import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.config import settings
from geoadmin.db.models import Account, Admin
from geoadmin.exceptions import (
    AuthenticationError,
    AuthenticationRequiredError,
    translate_db_errors,
)
from geoadmin.models.domain import Credentials, Principal, PrincipalKind
from geoadmin.observability.metrics import metrics
from geoadmin.services.passwords import verify_password
from geoadmin.services.session_store import SessionRecord, SessionStore, new_session_id

logger = get_logger(__name__)

CSRF_TOKEN_BYTES = 32

_MODELS: dict[PrincipalKind, type[Account] | type[Admin]] = {
    PrincipalKind.ACCOUNT: Account,
    PrincipalKind.ADMIN: Admin,
}


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(CSRF_TOKEN_BYTES)


class SessionAuthority:
    """
    Per-request view of the caller's session.

    The record is loaded on first use and written back only when something
    changes, so anonymous read-only requests never create a session.

    Usage:
        authority = SessionAuthority(SessionStore(get_store()), request_cookie, response)
        principal = await authority.current_principal(PrincipalKind.ADMIN)
    """

    def __init__(
        self,
        store: SessionStore,
        session_id: str | None,
        response: Response | None = None,
    ):
        self.store = store
        self.session_id = session_id
        self.response = response
        self._record: SessionRecord | None = None
        self._persisted = False

    # ========================================================================
    # Authentication
    # ========================================================================

    async def authenticate(
        self, kind: PrincipalKind, credentials: Credentials, db: AsyncSession
    ) -> Principal:
        """
        Check a username and password against the kind's own table.

        Raises:
            AuthenticationError: unknown user or wrong password
        """
        model = _MODELS[kind]
        with translate_db_errors(f"find {kind.value}"):
            query = select(model).where(model.username == credentials.username)
            result = await db.execute(query)
            user = result.scalar_one_or_none()

        password_hash = user.password_hash if user is not None else None
        if not verify_password(password_hash, credentials.password) or user is None:
            metrics.record_login(kind.value, "failure")
            logger.warning(
                "login_failed",
                kind=kind.value,
                username=credentials.username,
                user_exists=user is not None,
            )
            raise AuthenticationError()

        metrics.record_login(kind.value, "success")
        return Principal(id=user.id, username=user.username)

    async def bind_session(self, kind: PrincipalKind, principal: Principal) -> None:
        """Attach a principal to the session; admin logins also rotate the session id."""
        record = await self._load()
        record.bind(kind, principal)

        if kind == PrincipalKind.ADMIN:
            await self._rotate(record)
        else:
            await self._save(record)

        logger.info("session_bound", kind=kind.value, principal_id=principal.id)

    async def unbind_session(self, kind: PrincipalKind) -> None:
        """Clear only this kind's binding."""
        record = await self._load()
        principal = record.principal(kind)
        if principal is None:
            return

        record.bind(kind, None)
        await self._save(record)
        logger.info("session_unbound", kind=kind.value, principal_id=principal.id)

    async def current_principal(
        self, kind: PrincipalKind, required: bool = True
    ) -> Principal | None:
        """
        The principal bound for this kind.

        Raises:
            AuthenticationRequiredError: required and nobody is bound
        """
        principal = (await self._load()).principal(kind)
        if principal is None and required:
            login_path = settings.admin_login_path if kind == PrincipalKind.ADMIN else "/login"
            raise AuthenticationRequiredError(kind.value, login_path=login_path)
        return principal

    # ========================================================================
    # CSRF
    # ========================================================================

    async def issue_or_get_csrf_token(self) -> str:
        """The session's CSRF token, created and stored on first request."""
        record = await self._load()
        if record.csrf_token is None:
            record.csrf_token = generate_csrf_token()
            await self._save(record)
        return record.csrf_token

    async def rotate_csrf_token(self) -> str:
        record = await self._load()
        record.csrf_token = generate_csrf_token()
        await self._save(record)
        return record.csrf_token

    async def validate_csrf(self, submitted: str | None) -> bool:
        """Constant-time check against the stored token; missing on either side fails."""
        stored = (await self._load()).csrf_token
        if not stored or not submitted:
            return False
        return hmac.compare_digest(stored.encode(), submitted.encode())

    # ========================================================================
    # Record lifecycle
    # ========================================================================

    async def _load(self) -> SessionRecord:
        if self._record is not None:
            return self._record

        record = None
        if self.session_id:
            record = await self.store.load(self.session_id)

        if record is None:
            # Unknown or expired id: start over and mint a new id on first write
            self.session_id = None
            self._record = SessionRecord()
            return self._record

        self._persisted = True
        self._record = record
        self._set_cookie()
        return record

    async def _save(self, record: SessionRecord) -> None:
        if self.session_id is None:
            self.session_id = new_session_id()
            self._set_cookie()
        await self.store.save(self.session_id, record)
        self._persisted = True

    async def _rotate(self, record: SessionRecord) -> None:
        previous = self.session_id if self._persisted else None

        self.session_id = new_session_id()
        await self.store.save(self.session_id, record)
        self._persisted = True
        if previous is not None:
            await self.store.delete(previous)

        self._set_cookie()
        metrics.session_rotations_total.inc()

    def _set_cookie(self) -> None:
        if self.response is None or self.session_id is None:
            return
        # At most one session Set-Cookie per response; the latest id wins
        prefix = f"{settings.session_cookie_name}=".encode("latin-1")
        self.response.raw_headers[:] = [
            (name, value)
            for name, value in self.response.raw_headers
            if not (name == b"set-cookie" and value.startswith(prefix))
        ]
        self.response.set_cookie(
            key=settings.session_cookie_name,
            value=self.session_id,
            max_age=self.store.ttl_seconds,
            httponly=True,
            samesite="lax",
            secure=settings.session_cookie_secure,
            path="/",
        )
