"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TypeVar


E = TypeVar("E", bound=Enum)

# Largest offset a signed 64-bit LIMIT/OFFSET accepts
MAX_OFFSET = 2**63 - 1
MAX_SEARCH_LENGTH = 255


class PrincipalKind(str, Enum):
    """The two independent identities a session can carry."""

    ACCOUNT = "account"
    ADMIN = "admin"


class SortColumn(str, Enum):
    """Account listing columns a caller may sort by."""

    ID = "id"
    USERNAME = "username"
    EMAIL = "email"
    CREATED_AT = "created_at"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Principal:
    """An authenticated identity bound to a session."""

    id: int
    username: str


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


@dataclass(frozen=True)
class CountryData:
    """Immutable country snapshot - the unit cached under "countries"."""

    id: int
    name: str


@dataclass(frozen=True)
class StateData:
    """Immutable state snapshot - the unit cached under "states:<country_id>"."""

    id: int
    country_id: int
    name: str


@dataclass(frozen=True)
class StateWithCountry:
    """State joined with its country's name for the admin states list."""

    id: int
    name: str
    country_id: int
    country_name: str


@dataclass(frozen=True)
class AccountRow:
    """One row of an account listing."""

    id: int
    username: str
    email: str
    created_at: datetime


@dataclass(frozen=True)
class AccountListing:
    """Result of a listing query: the page plus both counts."""

    rows: list[AccountRow]
    total_count: int
    filtered_count: int


@dataclass(frozen=True)
class AccountDetail:
    """Full account view with resolved location names."""

    id: int
    username: str
    email: str
    address: str | None
    country_id: int | None
    country_name: str | None
    state_id: int | None
    state_name: str | None
    created_at: datetime


@dataclass(frozen=True)
class AccountInput:
    """Validated account fields for create/update."""

    username: str
    email: str
    address: str | None
    country_id: int | None
    state_id: int | None

    def __post_init__(self) -> None:
        """Validate account fields."""
        if not self.username:
            raise ValueError("username cannot be empty")
        if not self.email:
            raise ValueError("email cannot be empty")


@dataclass(frozen=True)
class DashboardSummary:
    account_count: int
    country_count: int
    state_count: int


@dataclass(frozen=True)
class PaginationRequest:
    """
    A listing request after the allowlist step.

    Only build one from caller input through from_untrusted(); the fields
    are already safe to hand to the query builder.
    """

    offset: int
    limit: int
    search: str | None
    order_column: SortColumn
    order_direction: SortDirection

    def __post_init__(self) -> None:
        """Validate pagination constraints."""
        if self.offset < 0:
            raise ValueError(f"offset cannot be negative: {self.offset}")
        if self.limit <= 0:
            raise ValueError(f"limit must be positive: {self.limit}")

    @classmethod
    def from_untrusted(
        cls,
        *,
        offset: int | None = None,
        limit: int | None = None,
        search: str | None = None,
        order_column: str | None = None,
        order_direction: str | None = None,
        default_limit: int = 10,
        max_limit: int = 500,
    ) -> "PaginationRequest":
        """
        Map raw caller input onto the allowlists.

        Unknown columns fall back to id and unknown directions to desc,
        silently. Offsets clamp into [0, MAX_OFFSET]; a missing, zero or
        negative limit becomes default_limit and anything above max_limit is
        capped. Blank search text means no search and longer text is cut to
        MAX_SEARCH_LENGTH characters.
        """
        column = _parse_enum(SortColumn, order_column, SortColumn.ID)
        direction = _parse_enum(SortDirection, order_direction, SortDirection.DESC)

        effective_limit = limit if limit is not None and limit > 0 else default_limit
        effective_limit = min(effective_limit, max_limit)

        trimmed = search.strip()[:MAX_SEARCH_LENGTH].strip() if search else ""

        return cls(
            offset=min(max(offset or 0, 0), MAX_OFFSET),
            limit=effective_limit,
            search=trimmed or None,
            order_column=column,
            order_direction=direction,
        )


def _parse_enum(enum_cls: type[E], raw: str | None, default: E) -> E:
    if raw is None:
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        return default
