"""
Exception Classes - Strongly typed exception hierarchy.

Every error a request can fail with is a GeoAdminError; the presentation
layer maps each subclass to a specific response instead of a generic 500.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class GeoAdminError(Exception):
    """Base exception for all application errors."""

    pass


class NotFoundError(GeoAdminError):
    """Raised when a looked-up entity does not exist."""

    def __init__(self, entity: str, entity_id: int | str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConflictError(GeoAdminError):
    """Raised when a write would break a referential or uniqueness rule."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailedError(GeoAdminError):
    """Raised when submitted data fails a check (CSRF, cross-field rules)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class CsrfValidationError(ValidationFailedError):
    """Raised when a state-changing request carries a missing or stale CSRF token."""

    def __init__(self) -> None:
        super().__init__("Invalid CSRF token", field="csrf_token")


class UnavailableError(GeoAdminError):
    """Raised when the durable store or the session store cannot be reached."""

    def __init__(self, resource: str, message: str) -> None:
        self.resource = resource
        self.message = message
        super().__init__(f"{resource} unavailable: {message}")


class AuthenticationError(GeoAdminError):
    """Raised when credentials are rejected."""

    def __init__(self, message: str = "Invalid username or password") -> None:
        self.message = message
        super().__init__(message)


class AuthenticationRequiredError(GeoAdminError):
    """Raised when a route needs a principal of some kind and the session has none."""

    def __init__(self, kind: str, login_path: str | None = None) -> None:
        self.kind = kind
        self.login_path = login_path
        super().__init__(f"Authentication required: {kind}")


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """
    Map SQLAlchemy failures onto the domain taxonomy.

    IntegrityError (unique / foreign key violation) becomes ConflictError,
    anything else from the driver becomes UnavailableError. Domain errors
    raised inside the block pass through untouched.
    """
    try:
        yield
    except IntegrityError as e:
        raise ConflictError(f"{operation} violates a database constraint") from e
    except SQLAlchemyError as e:
        raise UnavailableError("database", f"{operation} failed: {type(e).__name__}") from e
