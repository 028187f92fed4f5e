"""
Administrator accounts.

Admins are provisioned from the command line (scripts/create_admin.py);
there is no HTTP route that creates one.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from geoadmin.db.models import Admin
from geoadmin.exceptions import ConflictError, ValidationFailedError, translate_db_errors
from geoadmin.models.api import EMAIL_PATTERN, MIN_PASSWORD_LENGTH
from geoadmin.models.domain import Principal
from geoadmin.services.passwords import hash_password

logger = get_logger(__name__)


class AdminService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, username: str, email: str, password: str) -> Principal:
        """
        Create an administrator.

        Raises:
            ValidationFailedError: blank username, malformed email or short password
            ConflictError: username or email already taken
        """
        username = username.strip()
        email = email.strip()
        if not username:
            raise ValidationFailedError("Username must not be empty", field="username")
        if not EMAIL_PATTERN.match(email):
            raise ValidationFailedError("Invalid email address", field="email")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
            )

        with translate_db_errors("check admin"):
            existing = await self.db.execute(
                select(Admin.id).where((Admin.username == username) | (Admin.email == email))
            )
        if existing.first() is not None:
            raise ConflictError(f"Admin with username '{username}' or that email already exists")

        admin = Admin(username=username, email=email, password_hash=hash_password(password))
        with translate_db_errors("create admin"):
            self.db.add(admin)
            await self.db.commit()
            await self.db.refresh(admin)

        logger.info("admin_created", admin_id=admin.id, username=username)
        return Principal(id=admin.id, username=admin.username)

    async def list_admins(self) -> list[tuple[Principal, str]]:
        """(principal, email) for every admin, by id."""
        with translate_db_errors("list admins"):
            result = await self.db.execute(select(Admin).order_by(Admin.id.asc()))
            return [
                (Principal(id=a.id, username=a.username), a.email)
                for a in result.scalars().all()
            ]
