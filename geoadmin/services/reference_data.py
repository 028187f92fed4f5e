"""
Reference-Data Cache.

Country and state lists are read far more often than they change (every
account form needs them), so they are served from the key/value store and
loaded lazily from the database on a miss.

Guarantees:
- An entry is never served past its TTL (the store expires it).
- After invalidate() returns, no key that a country/state mutation could
  have changed is left in the store.
- Store failures are logged and absorbed; the database result is returned.
- Database failures on a miss surface as UnavailableError.
"""

from collections.abc import Iterable
from typing import TypeVar

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.config import settings
from geoadmin.db.models import Country, State
from geoadmin.exceptions import UnavailableError, translate_db_errors
from geoadmin.models.domain import CountryData, StateData
from geoadmin.observability.metrics import metrics
from geoadmin.observability.tracing import trace_operation
from geoadmin.services.cache_store import KeyValueStore

logger = get_logger(__name__)

COUNTRIES_KEY = "countries"

T = TypeVar("T")

_countries_adapter = TypeAdapter(list[CountryData])
_states_adapter = TypeAdapter(list[StateData])


def states_key(country_id: int) -> str:
    return f"states:{country_id}"


async def load_countries(db: AsyncSession) -> list[CountryData]:
    """All countries from the database, ordered by name."""
    with translate_db_errors("load countries"):
        result = await db.execute(select(Country).order_by(Country.name.asc()))
        return [CountryData(id=c.id, name=c.name) for c in result.scalars().all()]


async def load_states(db: AsyncSession, country_id: int) -> list[StateData]:
    """States of one country from the database, ordered by name."""
    with translate_db_errors("load states"):
        result = await db.execute(
            select(State).where(State.country_id == country_id).order_by(State.name.asc())
        )
        return [
            StateData(id=s.id, country_id=s.country_id, name=s.name)
            for s in result.scalars().all()
        ]


class ReferenceDataCache:
    """
    Cache-aside lookups for countries and states.

    Usage:
        cache = ReferenceDataCache(db, get_store())
        countries = await cache.get_countries()

        # after committing a country/state change
        await cache.invalidate()
    """

    def __init__(self, db: AsyncSession, store: KeyValueStore, ttl_seconds: int | None = None):
        self.db = db
        self.store = store
        self.ttl_seconds = ttl_seconds or settings.geo_cache_ttl_seconds

    async def get_countries(self) -> list[CountryData]:
        cached = await self._read(COUNTRIES_KEY, _countries_adapter)
        if cached is not None:
            return cached

        countries = await load_countries(self.db)
        await self._write(COUNTRIES_KEY, _countries_adapter.dump_json(countries).decode())
        return countries

    async def get_states(self, country_id: int) -> list[StateData]:
        key = states_key(country_id)
        cached = await self._read(key, _states_adapter)
        if cached is not None:
            return cached

        states = await load_states(self.db, country_id)
        await self._write(key, _states_adapter.dump_json(states).decode())
        return states

    async def invalidate(self, extra_country_ids: Iterable[int] = ()) -> None:
        """
        Drop every cached country/state list.

        The per-country keys are found by re-listing countries from the
        database; pass the id of a country that no longer exists (just
        deleted) in extra_country_ids so its states key is dropped too.
        Never raises.
        """
        keys = {COUNTRIES_KEY}
        keys.update(states_key(cid) for cid in extra_country_ids)

        with trace_operation("geo_cache_invalidate") as span:
            try:
                countries = await load_countries(self.db)
                keys.update(states_key(c.id) for c in countries)
            except UnavailableError as e:
                logger.warning("geo_cache_invalidate_listing_failed", error=str(e))

            span.set_attribute("key_count", len(keys))
            try:
                await self.store.delete(*sorted(keys))
            except UnavailableError as e:
                metrics.record_invalidation(success=False)
                metrics.record_cache_error("invalidate")
                logger.error("geo_cache_invalidate_failed", key_count=len(keys), error=str(e))
                return

        metrics.record_invalidation(success=True)
        logger.info("geo_cache_invalidated", key_count=len(keys))

    async def _read(self, key: str, adapter: TypeAdapter[list[T]]) -> list[T] | None:
        try:
            raw = await self.store.get(key)
        except UnavailableError as e:
            metrics.record_cache_error("get")
            logger.warning("geo_cache_read_failed", key=key, error=str(e))
            return None

        if raw is None:
            metrics.record_cache_lookup(key, hit=False)
            logger.debug("geo_cache_miss", key=key)
            return None

        try:
            value = adapter.validate_json(raw)
        except ValidationError:
            metrics.record_cache_lookup(key, hit=False)
            logger.warning("geo_cache_entry_corrupt", key=key)
            return None

        metrics.record_cache_lookup(key, hit=True)
        return value

    async def _write(self, key: str, payload: str) -> None:
        try:
            await self.store.set(key, payload, self.ttl_seconds)
        except UnavailableError as e:
            metrics.record_cache_error("set")
            logger.warning("geo_cache_populate_failed", key=key, error=str(e))
