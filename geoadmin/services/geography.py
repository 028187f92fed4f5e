"""
Country and state management.

Every successful create, update or delete invalidates the reference-data
cache after the commit and before returning, so the next lookup sees the
change.

Delete guards count dependents first and refuse with ConflictError. The
count and the delete are not one transaction; the RESTRICT foreign keys
catch anything that slips in between and surface as ConflictError too.
"""

from typing import NoReturn

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.db.models import Account, Country, State
from geoadmin.exceptions import ConflictError, NotFoundError, translate_db_errors
from geoadmin.models.domain import CountryData, DashboardSummary, StateData, StateWithCountry
from geoadmin.observability.metrics import metrics
from geoadmin.services.reference_data import ReferenceDataCache

logger = get_logger(__name__)


class GeographyService:
    """
    Country/state CRUD bound to one database session and the cache.

    Usage:
        service = GeographyService(db, ReferenceDataCache(db, get_store()))
        country = await service.create_country("Malaysia")
    """

    def __init__(self, db: AsyncSession, cache: ReferenceDataCache):
        self.db = db
        self.cache = cache

    # ========================================================================
    # Countries
    # ========================================================================

    async def get_country(self, country_id: int) -> CountryData:
        country = await self._country(country_id)
        return CountryData(id=country.id, name=country.name)

    async def create_country(self, name: str) -> CountryData:
        country = Country(name=name)
        with translate_db_errors("create country"):
            self.db.add(country)
            await self.db.commit()
            await self.db.refresh(country)

        logger.info("country_created", country_id=country.id, name=country.name)
        await self.cache.invalidate()
        return CountryData(id=country.id, name=country.name)

    async def update_country(self, country_id: int, name: str) -> CountryData:
        country = await self._country(country_id)
        with translate_db_errors("update country"):
            country.name = name
            await self.db.commit()

        logger.info("country_updated", country_id=country_id, name=name)
        await self.cache.invalidate()
        return CountryData(id=country.id, name=country.name)

    async def delete_country(self, country_id: int) -> None:
        """Delete a country that no state or account references."""
        country = await self._country(country_id)

        state_count = await self._count(State, State.country_id == country_id)
        if state_count:
            self._refuse("country", country_id, f"Country has {state_count} state(s)")

        account_count = await self._count(Account, Account.country_id == country_id)
        if account_count:
            self._refuse("country", country_id, f"Country is used by {account_count} user(s)")

        with translate_db_errors("delete country"):
            await self.db.delete(country)
            await self.db.commit()

        logger.info("country_deleted", country_id=country_id)
        await self.cache.invalidate(extra_country_ids=[country_id])

    # ========================================================================
    # States
    # ========================================================================

    async def list_states_with_countries(self) -> list[StateWithCountry]:
        """All states joined with their country, ordered by country then state name."""
        query = (
            select(State.id, State.name, State.country_id, Country.name)
            .join(Country, State.country_id == Country.id)
            .order_by(Country.name.asc(), State.name.asc())
        )
        with translate_db_errors("list states"):
            result = await self.db.execute(query)
            return [
                StateWithCountry(
                    id=state_id, name=name, country_id=country_id, country_name=country_name
                )
                for state_id, name, country_id, country_name in result.all()
            ]

    async def get_state(self, state_id: int) -> StateData:
        state = await self._state(state_id)
        return StateData(id=state.id, country_id=state.country_id, name=state.name)

    async def create_state(self, country_id: int, name: str) -> StateData:
        await self._country(country_id)

        state = State(country_id=country_id, name=name)
        with translate_db_errors("create state"):
            self.db.add(state)
            await self.db.commit()
            await self.db.refresh(state)

        logger.info("state_created", state_id=state.id, country_id=country_id, name=name)
        await self.cache.invalidate()
        return StateData(id=state.id, country_id=state.country_id, name=state.name)

    async def update_state(self, state_id: int, country_id: int, name: str) -> StateData:
        state = await self._state(state_id)
        await self._country(country_id)

        previous_country_id = state.country_id
        with translate_db_errors("update state"):
            state.country_id = country_id
            state.name = name
            await self.db.commit()

        logger.info(
            "state_updated",
            state_id=state_id,
            country_id=country_id,
            previous_country_id=previous_country_id,
        )
        await self.cache.invalidate()
        return StateData(id=state.id, country_id=state.country_id, name=state.name)

    async def delete_state(self, state_id: int) -> None:
        """Delete a state that no account references."""
        state = await self._state(state_id)

        account_count = await self._count(Account, Account.state_id == state_id)
        if account_count:
            self._refuse("state", state_id, f"State is used by {account_count} user(s)")

        with translate_db_errors("delete state"):
            await self.db.delete(state)
            await self.db.commit()

        logger.info("state_deleted", state_id=state_id, country_id=state.country_id)
        await self.cache.invalidate()

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _country(self, country_id: int) -> Country:
        with translate_db_errors("get country"):
            country = await self.db.get(Country, country_id)
        if country is None:
            raise NotFoundError("Country", country_id)
        return country

    async def _state(self, state_id: int) -> State:
        with translate_db_errors("get state"):
            state = await self.db.get(State, state_id)
        if state is None:
            raise NotFoundError("State", state_id)
        return state

    async def _count(self, model: type, predicate: ColumnElement[bool]) -> int:
        with translate_db_errors("count dependents"):
            query = select(func.count()).select_from(model).where(predicate)
            result = await self.db.execute(query)
            return int(result.scalar_one())

    @staticmethod
    def _refuse(entity: str, entity_id: int, message: str) -> NoReturn:
        metrics.delete_conflicts_total.labels(entity=entity).inc()
        logger.warning("delete_refused", entity=entity, entity_id=entity_id, reason=message)
        raise ConflictError(f"Cannot delete {entity}. {message}")


async def dashboard_summary(db: AsyncSession) -> DashboardSummary:
    """Account, country and state totals for the admin dashboard."""
    with translate_db_errors("dashboard counts"):
        accounts = (await db.execute(select(func.count()).select_from(Account))).scalar_one()
        countries = (await db.execute(select(func.count()).select_from(Country))).scalar_one()
        states = (await db.execute(select(func.count()).select_from(State))).scalar_one()
    return DashboardSummary(
        account_count=int(accounts), country_count=int(countries), state_count=int(states)
    )
