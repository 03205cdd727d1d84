"""
Tests for catalog errors and error codes.
"""

from pokedex.core.catalog import EntityKind
from pokedex.core.error_codes import ErrorCode, get_status_code, is_retryable
from pokedex.core.exceptions import (
    CatalogError,
    ConflictError,
    NotFoundError,
    PersistenceConflict,
    TransientChannelFailure,
    ValidationFailed,
)


class TestErrorCodes:
    """HTTP status mapping."""

    def test_not_found_codes_map_to_404(self):
        for code in (
            ErrorCode.NOT_FOUND,
            ErrorCode.TRAINER_NOT_FOUND,
            ErrorCode.POKEMON_NOT_FOUND,
            ErrorCode.TYPE_NOT_FOUND,
        ):
            assert get_status_code(code) == 404

    def test_other_statuses(self):
        assert get_status_code(ErrorCode.VALIDATION_ERROR) == 400
        assert get_status_code(ErrorCode.DUPLICATE_TYPE_NAME) == 409
        assert get_status_code(ErrorCode.CHANNEL_UNAVAILABLE) == 503

    def test_retryable(self):
        assert is_retryable(ErrorCode.PERSISTENCE_CONFLICT) is True
        assert is_retryable(ErrorCode.TRAINER_NOT_FOUND) is False


class TestCatalogErrors:
    """Error payloads."""

    def test_not_found_message(self):
        error = NotFoundError(EntityKind.POKEMON, 25)

        assert str(error) == "Pokemon not found with id: 25"
        assert error.code == ErrorCode.POKEMON_NOT_FOUND
        assert error.status_code == 404
        assert error.retryable is False

    def test_not_found_unknown_kind_uses_generic_code(self):
        error = NotFoundError("Gym")
        assert error.code == ErrorCode.NOT_FOUND
        assert error.message == "Gym not found"

    def test_to_dict(self):
        error = ValidationFailed("hp must not be negative, got -1", field="hp")
        assert error.to_dict() == {
            "code": "VALIDATION_ERROR",
            "message": "hp must not be negative, got -1",
        }

    def test_hierarchy(self):
        errors = [
            NotFoundError("Trainer", 1),
            ValidationFailed("bad"),
            ConflictError("dup"),
            PersistenceConflict("Trainer", 1),
            TransientChannelFailure("down", "q"),
        ]
        assert all(isinstance(e, CatalogError) for e in errors)

    def test_persistence_conflict_is_retryable(self):
        error = PersistenceConflict(EntityKind.TRAINER, 3)
        assert error.retryable is True
        assert error.resource == "Trainer"
