"""
Public routes - CSRF token issuance and end-user account sessions.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.api.dependencies import enforce_csrf, get_session_authority, require_account
from geoadmin.db.session import get_db
from geoadmin.models.api import (
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    PrincipalResponse,
    RegisterRequest,
)
from geoadmin.models.domain import Credentials, Principal, PrincipalKind
from geoadmin.services.accounts import AccountService
from geoadmin.services.session_authority import SessionAuthority

logger = get_logger(__name__)
router = APIRouter(tags=["public"])


@router.get("/csrf", response_model=CsrfTokenResponse)
async def get_csrf_token(
    authority: SessionAuthority = Depends(get_session_authority),
) -> CsrfTokenResponse:
    """
    Get the session's CSRF token, creating the session if needed.

    Every state-changing request must echo this token back in its
    csrf_token field or the X-CSRF-Token header.
    """
    return CsrfTokenResponse(csrf_token=await authority.issue_or_get_csrf_token())


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    authority: SessionAuthority = Depends(get_session_authority),
) -> LoginResponse:
    """Create an account and log it in."""
    await enforce_csrf(authority, request, body)

    principal = await AccountService(db).register(body.username, body.email, body.password)
    await authority.bind_session(PrincipalKind.ACCOUNT, principal)

    return LoginResponse(
        user=PrincipalResponse(id=principal.id, username=principal.username),
        csrf_token=await authority.issue_or_get_csrf_token(),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    authority: SessionAuthority = Depends(get_session_authority),
) -> LoginResponse:
    await enforce_csrf(authority, request, body)

    credentials = Credentials(username=body.username, password=body.password)
    principal = await authority.authenticate(PrincipalKind.ACCOUNT, credentials, db)
    await authority.bind_session(PrincipalKind.ACCOUNT, principal)

    logger.info("account_login_success", account_id=principal.id, username=principal.username)
    return LoginResponse(
        user=PrincipalResponse(id=principal.id, username=principal.username),
        csrf_token=await authority.issue_or_get_csrf_token(),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    body: LogoutRequest | None = None,
    authority: SessionAuthority = Depends(get_session_authority),
) -> MessageResponse:
    """Log the account out; an admin login in the same session is kept."""
    await enforce_csrf(authority, request, body)
    await authority.unbind_session(PrincipalKind.ACCOUNT)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=PrincipalResponse)
async def me(principal: Principal = Depends(require_account)) -> PrincipalResponse:
    return PrincipalResponse(id=principal.id, username=principal.username)
