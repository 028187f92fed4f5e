"""
Admin API routes - dashboard, countries, states, geo lookups and accounts.

Every route requires an administrator in the session; every mutation also
requires a valid CSRF token.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.api.dependencies import (
    enforce_csrf,
    get_geography_service,
    get_reference_cache,
    get_session_authority,
    require_admin,
)
from geoadmin.config import settings
from geoadmin.db.session import get_db
from geoadmin.models.api import (
    AccountDetailResponse,
    AccountListResponse,
    AccountRowResponse,
    CountryRequest,
    CountryResponse,
    CreateAccountRequest,
    DashboardResponse,
    DataTableResponse,
    StateRequest,
    StateResponse,
    StateWithCountryResponse,
    UpdateAccountRequest,
)
from geoadmin.models.domain import AccountInput, PaginationRequest, Principal
from geoadmin.services.account_listing import column_for_index, list_accounts
from geoadmin.services.accounts import AccountService
from geoadmin.services.geography import GeographyService, dashboard_summary
from geoadmin.services.reference_data import ReferenceDataCache
from geoadmin.services.session_authority import SessionAuthority

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


def _account_input(body: CreateAccountRequest | UpdateAccountRequest) -> AccountInput:
    return AccountInput(
        username=body.username,
        email=body.email,
        address=body.address,
        country_id=body.country_id,
        state_id=body.state_id,
    )


# ============================================================================
# Dashboard
# ============================================================================


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> DashboardResponse:
    summary = await dashboard_summary(db)
    return DashboardResponse.model_validate(summary)


# ============================================================================
# Countries
# ============================================================================


@router.get("/countries", response_model=list[CountryResponse])
async def list_countries(
    admin: Principal = Depends(require_admin),
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> list[CountryResponse]:
    """List all countries ordered by name (served from the reference-data cache)."""
    return [CountryResponse.model_validate(c) for c in await cache.get_countries()]


@router.post("/countries", response_model=CountryResponse, status_code=status.HTTP_201_CREATED)
async def create_country(
    body: CountryRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    service: GeographyService = Depends(get_geography_service),
) -> CountryResponse:
    await enforce_csrf(authority, request, body)
    country = await service.create_country(body.name)
    return CountryResponse.model_validate(country)


@router.get("/countries/{country_id}", response_model=CountryResponse)
async def get_country(
    country_id: int,
    admin: Principal = Depends(require_admin),
    service: GeographyService = Depends(get_geography_service),
) -> CountryResponse:
    return CountryResponse.model_validate(await service.get_country(country_id))


@router.put("/countries/{country_id}", response_model=CountryResponse)
async def update_country(
    country_id: int,
    body: CountryRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    service: GeographyService = Depends(get_geography_service),
) -> CountryResponse:
    await enforce_csrf(authority, request, body)
    country = await service.update_country(country_id, body.name)
    return CountryResponse.model_validate(country)


@router.delete("/countries/{country_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_country(
    country_id: int,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    service: GeographyService = Depends(get_geography_service),
) -> None:
    """
    Delete a country.

    Raises:
        ConflictError (409): states or users still reference the country
    """
    await enforce_csrf(authority, request)
    await service.delete_country(country_id)


# ============================================================================
# States
# ============================================================================


@router.get("/states", response_model=list[StateWithCountryResponse])
async def list_states(
    admin: Principal = Depends(require_admin),
    service: GeographyService = Depends(get_geography_service),
) -> list[StateWithCountryResponse]:
    """List all states with their country name, ordered by country then state."""
    states = await service.list_states_with_countries()
    return [StateWithCountryResponse.model_validate(s) for s in states]


@router.post("/states", response_model=StateResponse, status_code=status.HTTP_201_CREATED)
async def create_state(
    body: StateRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    service: GeographyService = Depends(get_geography_service),
) -> StateResponse:
    await enforce_csrf(authority, request, body)
    state = await service.create_state(body.country_id, body.name)
    return StateResponse.model_validate(state)


@router.get("/states/{state_id}", response_model=StateResponse)
async def get_state(
    state_id: int,
    admin: Principal = Depends(require_admin),
    service: GeographyService = Depends(get_geography_service),
) -> StateResponse:
    return StateResponse.model_validate(await service.get_state(state_id))


@router.put("/states/{state_id}", response_model=StateResponse)
async def update_state(
    state_id: int,
    body: StateRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    service: GeographyService = Depends(get_geography_service),
) -> StateResponse:
    await enforce_csrf(authority, request, body)
    state = await service.update_state(state_id, body.country_id, body.name)
    return StateResponse.model_validate(state)


@router.delete("/states/{state_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_state(
    state_id: int,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    service: GeographyService = Depends(get_geography_service),
) -> None:
    """
    Delete a state.

    Raises:
        ConflictError (409): users still reference the state
    """
    await enforce_csrf(authority, request)
    await service.delete_state(state_id)


# ============================================================================
# Geo lookups (dropdown data)
# ============================================================================


@router.get("/geo/countries", response_model=list[CountryResponse])
async def geo_countries(
    admin: Principal = Depends(require_admin),
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> list[CountryResponse]:
    return [CountryResponse.model_validate(c) for c in await cache.get_countries()]


@router.get("/geo/states", response_model=list[StateResponse])
async def geo_states(
    country_id: int = Query(..., ge=1),
    admin: Principal = Depends(require_admin),
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> list[StateResponse]:
    """States of one country, for the dependent dropdown on the account form."""
    return [StateResponse.model_validate(s) for s in await cache.get_states(country_id)]


# ============================================================================
# Accounts
# ============================================================================


@router.get("/users", response_model=AccountListResponse)
async def list_users(
    offset: int = Query(0, description="Rows to skip; negative values are treated as 0"),
    limit: int = Query(0, description="Page size; 0 means the default"),
    search: str | None = Query(None, description="Username/email substring"),
    order_column: str | None = Query(None, description="id, username, email or created_at"),
    order_direction: str | None = Query(None, description="asc or desc"),
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AccountListResponse:
    """
    List accounts with pagination, search and sorting.

    Unknown sort columns or directions silently fall back to id / desc.
    """
    pagination = PaginationRequest.from_untrusted(
        offset=offset,
        limit=limit,
        search=search,
        order_column=order_column,
        order_direction=order_direction,
        default_limit=settings.listing_default_limit,
        max_limit=settings.listing_max_limit,
    )
    listing = await list_accounts(db, pagination)

    return AccountListResponse(
        rows=[AccountRowResponse.model_validate(r) for r in listing.rows],
        total_count=listing.total_count,
        filtered_count=listing.filtered_count,
        offset=pagination.offset,
        limit=pagination.limit,
    )


@router.get("/users/datatable", response_model=DataTableResponse)
async def users_datatable(
    draw: int = Query(0),
    start: int = Query(0),
    length: int = Query(0),
    search_value: str | None = Query(None, alias="search[value]"),
    order_index: int | None = Query(None, alias="order[0][column]"),
    order_dir: str | None = Query(None, alias="order[0][dir]"),
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> DataTableResponse:
    """Server-side processing endpoint for the DataTables users grid."""
    pagination = PaginationRequest.from_untrusted(
        offset=start,
        limit=length,
        search=search_value,
        order_column=column_for_index(order_index).value,
        order_direction=order_dir,
        default_limit=settings.listing_default_limit,
        max_limit=settings.listing_max_limit,
    )
    listing = await list_accounts(db, pagination)

    return DataTableResponse(
        draw=draw,
        recordsTotal=listing.total_count,
        recordsFiltered=listing.filtered_count,
        data=[AccountRowResponse.model_validate(r) for r in listing.rows],
    )


@router.post("/users", response_model=AccountDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateAccountRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    db: AsyncSession = Depends(get_db),
) -> AccountDetailResponse:
    await enforce_csrf(authority, request, body)
    detail = await AccountService(db).create(_account_input(body), body.password)
    logger.info("admin_created_user", admin_id=admin.id, account_id=detail.id)
    return AccountDetailResponse.model_validate(detail)


@router.get("/users/{account_id}", response_model=AccountDetailResponse)
async def get_user(
    account_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AccountDetailResponse:
    return AccountDetailResponse.model_validate(await AccountService(db).get(account_id))


@router.put("/users/{account_id}", response_model=AccountDetailResponse)
async def update_user(
    account_id: int,
    body: UpdateAccountRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    db: AsyncSession = Depends(get_db),
) -> AccountDetailResponse:
    await enforce_csrf(authority, request, body)
    detail = await AccountService(db).update(
        account_id, _account_input(body), new_password=body.new_password
    )
    return AccountDetailResponse.model_validate(detail)


@router.delete("/users/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    account_id: int,
    request: Request,
    admin: Principal = Depends(require_admin),
    authority: SessionAuthority = Depends(get_session_authority),
    db: AsyncSession = Depends(get_db),
) -> None:
    await enforce_csrf(authority, request)
    await AccountService(db).delete(account_id)
    logger.info("admin_deleted_user", admin_id=admin.id, account_id=account_id)
