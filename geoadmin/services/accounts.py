"""
Account management.

Create, read, update and delete end-user accounts. Location fields are
checked for consistency here: a state must belong to the chosen country,
and a state cannot be set without a country.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.db.models import Account, Country, State
from geoadmin.exceptions import NotFoundError, ValidationFailedError, translate_db_errors
from geoadmin.models.domain import AccountDetail, AccountInput, Principal
from geoadmin.services.passwords import hash_password

logger = get_logger(__name__)


class AccountService:
    """Account CRUD bound to one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(self, username: str, email: str, password: str) -> Principal:
        """Self-registration: an account with no address or location."""
        account = Account(
            username=username,
            email=email,
            password_hash=hash_password(password),
        )
        with translate_db_errors("register account"):
            self.db.add(account)
            await self.db.commit()
            await self.db.refresh(account)

        logger.info("account_registered", account_id=account.id, username=username)
        return Principal(id=account.id, username=account.username)

    async def create(self, fields: AccountInput, password: str) -> AccountDetail:
        await self._check_location(fields.country_id, fields.state_id)

        account = Account(
            username=fields.username,
            email=fields.email,
            password_hash=hash_password(password),
            address=fields.address,
            country_id=fields.country_id,
            state_id=fields.state_id,
        )
        with translate_db_errors("create account"):
            self.db.add(account)
            await self.db.commit()
            await self.db.refresh(account)

        logger.info("account_created", account_id=account.id, username=account.username)
        return await self.get(account.id)

    async def get(self, account_id: int) -> AccountDetail:
        """Account with its country and state names resolved."""
        query = (
            select(Account, Country.name, State.name)
            .outerjoin(Country, Account.country_id == Country.id)
            .outerjoin(State, Account.state_id == State.id)
            .where(Account.id == account_id)
        )
        with translate_db_errors("get account"):
            row = (await self.db.execute(query)).first()

        if row is None:
            raise NotFoundError("User", account_id)

        account, country_name, state_name = row
        return AccountDetail(
            id=account.id,
            username=account.username,
            email=account.email,
            address=account.address,
            country_id=account.country_id,
            country_name=country_name,
            state_id=account.state_id,
            state_name=state_name,
            created_at=account.created_at,
        )

    async def update(
        self, account_id: int, fields: AccountInput, new_password: str | None = None
    ) -> AccountDetail:
        """Overwrite the account's fields; the password only changes when one is given."""
        account = await self._account(account_id)
        await self._check_location(fields.country_id, fields.state_id)

        with translate_db_errors("update account"):
            account.username = fields.username
            account.email = fields.email
            account.address = fields.address
            account.country_id = fields.country_id
            account.state_id = fields.state_id
            if new_password:
                account.password_hash = hash_password(new_password)
            await self.db.commit()

        logger.info(
            "account_updated",
            account_id=account_id,
            password_changed=bool(new_password),
        )
        return await self.get(account_id)

    async def delete(self, account_id: int) -> None:
        account = await self._account(account_id)
        with translate_db_errors("delete account"):
            await self.db.delete(account)
            await self.db.commit()

        logger.info("account_deleted", account_id=account_id)

    async def _account(self, account_id: int) -> Account:
        with translate_db_errors("get account"):
            account = await self.db.get(Account, account_id)
        if account is None:
            raise NotFoundError("User", account_id)
        return account

    async def _check_location(self, country_id: int | None, state_id: int | None) -> None:
        if country_id is not None:
            with translate_db_errors("get country"):
                country = await self.db.get(Country, country_id)
            if country is None:
                raise ValidationFailedError("Selected country does not exist", field="country_id")

        if state_id is None:
            return

        if country_id is None:
            raise ValidationFailedError("A state requires a country", field="state_id")

        with translate_db_errors("get state"):
            state = await self.db.get(State, state_id)
        if state is None:
            raise ValidationFailedError("Selected state does not exist", field="state_id")
        if state.country_id != country_id:
            raise ValidationFailedError(
                "Selected state does not belong to the selected country", field="state_id"
            )
