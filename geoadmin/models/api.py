"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

import re
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def _validate_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


Name = Annotated[str, AfterValidator(_strip_required)]
Email = Annotated[str, AfterValidator(_validate_email)]


class CsrfProtectedRequest(BaseModel):
    """Base for state-changing bodies; the token may also come from X-CSRF-Token."""

    csrf_token: str | None = Field(None, max_length=255)


# ============================================================================
# Auth Models
# ============================================================================


class LoginRequest(CsrfProtectedRequest):
    """POST /login and POST /admin/login request body."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class RegisterRequest(CsrfProtectedRequest):
    """POST /register request body."""

    username: Name = Field(..., min_length=1, max_length=255)
    email: Email = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=255)


class LogoutRequest(CsrfProtectedRequest):
    pass


class CsrfTokenResponse(BaseModel):
    csrf_token: str


class PrincipalResponse(BaseModel):
    """The principal bound to the current session for one kind."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str


class LoginResponse(BaseModel):
    user: PrincipalResponse
    csrf_token: str


class MessageResponse(BaseModel):
    message: str


# ============================================================================
# Country / State Models
# ============================================================================


class CountryRequest(CsrfProtectedRequest):
    """POST/PUT /admin/countries request body."""

    name: Name = Field(..., min_length=1, max_length=255)


class CountryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class StateRequest(CsrfProtectedRequest):
    """POST/PUT /admin/states request body."""

    country_id: int = Field(..., ge=1)
    name: Name = Field(..., min_length=1, max_length=255)


class StateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    country_id: int
    name: str


class StateWithCountryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    country_id: int
    country_name: str


# ============================================================================
# Account Models
# ============================================================================


class AccountFields(CsrfProtectedRequest):
    username: Name = Field(..., min_length=1, max_length=255)
    email: Email = Field(..., min_length=3, max_length=255)
    address: str | None = Field(None, max_length=2000)
    country_id: int | None = Field(None, ge=1)
    state_id: int | None = Field(None, ge=1)

    @field_validator("address")
    @classmethod
    def blank_address_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class CreateAccountRequest(AccountFields):
    """POST /admin/users request body."""

    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=255)


class UpdateAccountRequest(AccountFields):
    """PUT /admin/users/{id} request body. Password is only changed when given."""

    new_password: str | None = Field(None, max_length=255)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str | None) -> str | None:
        if not v:
            return None
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return v


class AccountRowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    created_at: datetime


class AccountListResponse(BaseModel):
    """GET /admin/users response."""

    rows: list[AccountRowResponse]
    total_count: int
    filtered_count: int
    offset: int
    limit: int


class DataTableResponse(BaseModel):
    """GET /admin/users/datatable response, in the DataTables server-side shape."""

    draw: int
    recordsTotal: int
    recordsFiltered: int
    data: list[AccountRowResponse]


class AccountDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    address: str | None
    country_id: int | None
    country_name: str | None
    state_id: int | None
    state_name: str | None
    created_at: datetime


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_count: int
    country_count: int
    state_count: int
