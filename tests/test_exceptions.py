"""
Tests for exception classes.

Covers the exception hierarchy and the database error translation.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from geoadmin.exceptions import (
    AuthenticationError,
    AuthenticationRequiredError,
    ConflictError,
    CsrfValidationError,
    GeoAdminError,
    NotFoundError,
    UnavailableError,
    ValidationFailedError,
    translate_db_errors,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            NotFoundError("Country", 1),
            ConflictError("in use"),
            ValidationFailedError("bad", field="name"),
            CsrfValidationError(),
            UnavailableError("redis", "down"),
            AuthenticationError(),
            AuthenticationRequiredError("admin", login_path="/admin/login"),
        ],
    )
    def test_all_are_geoadmin_errors(self, exc):
        assert isinstance(exc, GeoAdminError)

    def test_csrf_is_a_validation_failure(self):
        exc = CsrfValidationError()
        assert isinstance(exc, ValidationFailedError)
        assert exc.field == "csrf_token"

    def test_not_found_message(self):
        exc = NotFoundError("State", 42)
        assert exc.entity == "State"
        assert "42" in str(exc)

    def test_authentication_message_is_generic(self):
        assert str(AuthenticationError()) == "Invalid username or password"


class TestTranslateDbErrors:
    """Tests for translate_db_errors."""

    def test_integrity_error_becomes_conflict(self):
        with pytest.raises(ConflictError, match="create country"):
            with translate_db_errors("create country"):
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    def test_other_sqlalchemy_error_becomes_unavailable(self):
        with pytest.raises(UnavailableError) as exc_info:
            with translate_db_errors("list countries"):
                raise OperationalError("SELECT", {}, Exception("connection refused"))

        assert exc_info.value.resource == "database"

    def test_domain_errors_pass_through(self):
        with pytest.raises(NotFoundError):
            with translate_db_errors("get country"):
                raise NotFoundError("Country", 1)

    def test_original_error_is_chained(self):
        with pytest.raises(ConflictError) as exc_info:
            with translate_db_errors("create state"):
                raise IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

        assert isinstance(exc_info.value.__cause__, IntegrityError)
