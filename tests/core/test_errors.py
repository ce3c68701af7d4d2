"""Tests for error types and codes."""

import pytest
from sqlalchemy.exc import OperationalError

from recon.core.errors import (
    ConfigError,
    ErrorCode,
    InputError,
    ProjectError,
    ReconError,
    StoreError,
    SymbolLookupError,
    db_step,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.INPUT_MISSING_FIELD, 1000),
            (ErrorCode.INPUT_INVALID_VALUE, 1000),
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.STORE_STEP_FAILED, 3000),
            (ErrorCode.STORE_CONFLICT, 3000),
            (ErrorCode.PROJECT_DESCRIPTOR_NOT_FOUND, 4000),
            (ErrorCode.SYMBOL_AMBIGUOUS, 5000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        assert expected_range <= code.value < expected_range + 1000


class TestReconError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        error = StoreError.step_failed("insert proposal", "database is locked")

        result = error.to_dict()

        assert result == {
            "code": 3001,
            "error": "STORE_STEP_FAILED",
            "message": "insert proposal: database is locked",
            "details": {"step": "insert proposal", "reason": "database is locked"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        """Error string representation is human readable."""
        error = InputError.missing_field("title")

        assert str(error) == "[1001] INPUT_MISSING_FIELD: title is required"

    def test_subclasses_are_recon_errors(self) -> None:
        """Every factory produces a catchable ReconError."""
        errors = [
            InputError.invalid_value("check type", "nope", "unsupported"),
            ConfigError.parse_error("/x.yaml", "bad"),
            StoreError.not_found("edge", 7),
            ProjectError.descriptor_not_found("/repo"),
            SymbolLookupError.ambiguous("Run", []),
        ]
        for error in errors:
            assert isinstance(error, ReconError)
            assert isinstance(error, Exception)


class TestStoreError:
    """StoreError factory method tests."""

    def test_step_property_reads_details(self) -> None:
        assert StoreError.step_failed("count files", "boom").step == "count files"

    def test_corrupt_timestamp_names_parse_step(self) -> None:
        error = StoreError.corrupt_timestamp("yesterday", "invalid isoformat")
        assert error.code == ErrorCode.STORE_CORRUPT_TIMESTAMP
        assert error.step == "parse sync timestamp"
        assert error.details["value"] == "yesterday"

    def test_conflict_keeps_keyword_details(self) -> None:
        error = StoreError.conflict("edge already exists", relation="affects")
        assert error.code == ErrorCode.STORE_CONFLICT
        assert error.details == {"relation": "affects"}

    def test_not_found_message(self) -> None:
        assert StoreError.not_found("edge", 42).message == "edge 42 not found"


class TestDbStep:
    """db_step converts SQLAlchemy failures into step-named StoreErrors."""

    def test_wraps_sqlalchemy_error(self) -> None:
        with pytest.raises(StoreError) as exc_info, db_step("query modules"):
            raise OperationalError("SELECT 1", {}, Exception("no such table: packages"))

        assert exc_info.value.step == "query modules"
        assert "no such table: packages" in exc_info.value.message

    def test_leaves_other_errors_alone(self) -> None:
        with pytest.raises(ValueError), db_step("query modules"):
            raise ValueError("not a database problem")

    def test_passes_through_on_success(self) -> None:
        with db_step("noop"):
            value = 1
        assert value == 1


class TestSymbolLookupError:
    """Not-found messages depend on filters and suggestions."""

    def test_not_found_lists_suggestions(self) -> None:
        error = SymbolLookupError.not_found("Open", ["OpenStore", "openRaw"])
        assert error.code == ErrorCode.SYMBOL_NOT_FOUND
        assert error.message == "symbol 'Open' not found (suggestions: OpenStore, openRaw)"
        assert error.details["filtered"] is False

    def test_not_found_with_filters_drops_suggestions(self) -> None:
        error = SymbolLookupError.not_found("Open", [], {"package": "missing"})
        assert error.message == "symbol 'Open' not found with provided filters"
        assert error.details["filters"] == {"package": "missing"}

    def test_ambiguous_counts_candidates(self) -> None:
        error = SymbolLookupError.ambiguous("Config", [{"kind": "type"}, {"kind": "method"}])
        assert error.code == ErrorCode.SYMBOL_AMBIGUOUS
        assert error.message == "symbol 'Config' is ambiguous (2 candidates)"
