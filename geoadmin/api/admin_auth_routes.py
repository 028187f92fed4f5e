"""
Admin authentication routes.

Username/password login against the admins table. A successful login
rotates the session id and re-issues the session cookie.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.api.dependencies import enforce_csrf, get_session_authority, require_admin
from geoadmin.db.session import get_db
from geoadmin.models.api import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    PrincipalResponse,
)
from geoadmin.models.domain import Credentials, Principal, PrincipalKind
from geoadmin.services.session_authority import SessionAuthority

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["admin-auth"])


@router.post("/login", response_model=LoginResponse)
async def admin_login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    authority: SessionAuthority = Depends(get_session_authority),
) -> LoginResponse:
    """
    Log in as an administrator.

    Order matters: CSRF first, then credentials, then the session binding
    (which moves the session to a fresh id).

    Raises:
        CsrfValidationError (403): token missing or stale
        AuthenticationError (401): unknown admin or wrong password
    """
    await enforce_csrf(authority, request, body)

    credentials = Credentials(username=body.username, password=body.password)
    principal = await authority.authenticate(PrincipalKind.ADMIN, credentials, db)
    await authority.bind_session(PrincipalKind.ADMIN, principal)

    logger.info("admin_login_success", admin_id=principal.id, username=principal.username)
    return LoginResponse(
        user=PrincipalResponse(id=principal.id, username=principal.username),
        csrf_token=await authority.issue_or_get_csrf_token(),
    )


@router.post("/logout", response_model=MessageResponse)
async def admin_logout(
    request: Request,
    body: LogoutRequest | None = None,
    authority: SessionAuthority = Depends(get_session_authority),
) -> MessageResponse:
    """Log the administrator out; an account login in the same session is kept."""
    await enforce_csrf(authority, request, body)
    await authority.unbind_session(PrincipalKind.ADMIN)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=PrincipalResponse)
async def admin_me(admin: Principal = Depends(require_admin)) -> PrincipalResponse:
    return PrincipalResponse(id=admin.id, username=admin.username)
