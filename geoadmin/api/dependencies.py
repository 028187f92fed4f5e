"""
FastAPI dependencies - session authority, principals, CSRF and services.

Provides the per-request objects every route is built from.
"""

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.config import settings
from geoadmin.db.session import get_db
from geoadmin.exceptions import CsrfValidationError
from geoadmin.models.api import CsrfProtectedRequest
from geoadmin.models.domain import Principal, PrincipalKind
from geoadmin.observability.metrics import metrics
from geoadmin.services.cache_store import KeyValueStore, get_store
from geoadmin.services.geography import GeographyService
from geoadmin.services.reference_data import ReferenceDataCache
from geoadmin.services.session_authority import SessionAuthority
from geoadmin.services.session_store import SessionStore

logger = get_logger(__name__)

CSRF_HEADER = "X-CSRF-Token"


def get_kv_store() -> KeyValueStore:
    """The process-wide Redis store; tests override this dependency."""
    return get_store()


def get_session_authority(
    request: Request,
    response: Response,
    store: KeyValueStore = Depends(get_kv_store),
) -> SessionAuthority:
    """Session authority for this request, reading the session cookie."""
    return SessionAuthority(
        SessionStore(store),
        request.cookies.get(settings.session_cookie_name),
        response,
    )


def get_reference_cache(
    db: AsyncSession = Depends(get_db),
    store: KeyValueStore = Depends(get_kv_store),
) -> ReferenceDataCache:
    return ReferenceDataCache(db, store)


def get_geography_service(
    db: AsyncSession = Depends(get_db),
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> GeographyService:
    return GeographyService(db, cache)


async def require_admin(
    authority: SessionAuthority = Depends(get_session_authority),
) -> Principal:
    """
    Get the administrator bound to this session.

    Raises:
        AuthenticationRequiredError: no admin is logged in
    """
    principal = await authority.current_principal(PrincipalKind.ADMIN, required=True)
    assert principal is not None
    return principal


async def require_account(
    authority: SessionAuthority = Depends(get_session_authority),
) -> Principal:
    """
    Get the account bound to this session.

    Raises:
        AuthenticationRequiredError: no account is logged in
    """
    principal = await authority.current_principal(PrincipalKind.ACCOUNT, required=True)
    assert principal is not None
    return principal


async def enforce_csrf(
    authority: SessionAuthority,
    request: Request,
    body: CsrfProtectedRequest | None = None,
) -> None:
    """
    Reject a state-changing request whose CSRF token does not match the session.

    The token is read from the body's csrf_token field, falling back to the
    X-CSRF-Token header.

    Raises:
        CsrfValidationError: token missing, stale or from another session
    """
    submitted = body.csrf_token if body is not None and body.csrf_token else None
    if submitted is None:
        submitted = request.headers.get(CSRF_HEADER)

    if not await authority.validate_csrf(submitted):
        metrics.csrf_failures_total.inc()
        logger.warning(
            "csrf_validation_failed",
            path=request.url.path,
            method=request.method,
            token_submitted=submitted is not None,
        )
        raise CsrfValidationError()
