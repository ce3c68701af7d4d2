"""Recon error types with typed error codes.

Error code ranges:
- 1xxx: Input validation
- 2xxx: Config
- 3xxx: Store
- 4xxx: Project
- 5xxx: Symbol lookup
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Input (1xxx)
    INPUT_MISSING_FIELD = 1001
    INPUT_INVALID_VALUE = 1002

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Store (3xxx)
    STORE_STEP_FAILED = 3001
    STORE_CORRUPT_TIMESTAMP = 3002
    STORE_SERIALIZATION_FAILED = 3003
    STORE_NOT_FOUND = 3004
    STORE_CONFLICT = 3005

    # Project (4xxx)
    PROJECT_DESCRIPTOR_NOT_FOUND = 4001
    PROJECT_DESCRIPTOR_INVALID = 4002

    # Symbol lookup (5xxx)
    SYMBOL_NOT_FOUND = 5001
    SYMBOL_AMBIGUOUS = 5002


# No slots: contextlib assigns __traceback__ on errors leaving generator context
# managers, and the slotted frozen __setattr__ cannot delegate to Exception.
@dataclass(frozen=True)
class ReconError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'STORE_STEP_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class InputError(ReconError):
    """Caller-supplied claim or query input is missing or malformed."""

    @classmethod
    def missing_field(cls, field: str) -> "InputError":
        return cls(
            code=ErrorCode.INPUT_MISSING_FIELD,
            message=f"{field} is required",
            details={"field": field},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "InputError":
        return cls(
            code=ErrorCode.INPUT_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class ConfigError(ReconError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class StoreError(ReconError):
    """Database read/write failures, each naming the step that failed."""

    @property
    def step(self) -> str | None:
        step = self.details.get("step")
        return str(step) if step is not None else None

    @classmethod
    def step_failed(cls, step: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_STEP_FAILED,
            message=f"{step}: {reason}",
            details={"step": step, "reason": reason},
        )

    @classmethod
    def corrupt_timestamp(cls, value: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_CORRUPT_TIMESTAMP,
            message=f"parse sync timestamp: {reason}",
            details={"step": "parse sync timestamp", "value": value, "reason": reason},
        )

    @classmethod
    def serialization_failed(cls, what: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_SERIALIZATION_FAILED,
            message=f"marshal {what}: {reason}",
            details={"step": f"marshal {what}", "reason": reason},
        )

    @classmethod
    def not_found(cls, entity: str, entity_id: int) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_NOT_FOUND,
            message=f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )

    @classmethod
    def conflict(cls, reason: str, **details: Any) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_CONFLICT,
            message=reason,
            details=details,
        )


class ProjectError(ReconError):
    """Module descriptor could not be found or read."""

    @classmethod
    def descriptor_not_found(cls, root: str) -> "ProjectError":
        return cls(
            code=ErrorCode.PROJECT_DESCRIPTOR_NOT_FOUND,
            message=f"No module descriptor (go.mod, pyproject.toml, package.json) in {root}",
            details={"root": root},
        )

    @classmethod
    def descriptor_invalid(cls, path: str, reason: str) -> "ProjectError":
        return cls(
            code=ErrorCode.PROJECT_DESCRIPTOR_INVALID,
            message=f"Failed to read module descriptor {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class SymbolLookupError(ReconError):
    """A symbol name resolved to no row or to more than one."""

    @classmethod
    def not_found(
        cls,
        symbol: str,
        suggestions: list[str],
        filters: dict[str, str] | None = None,
    ) -> "SymbolLookupError":
        if filters:
            message = f"symbol {symbol!r} not found with provided filters"
        elif suggestions:
            message = f"symbol {symbol!r} not found (suggestions: {', '.join(suggestions)})"
        else:
            message = f"symbol {symbol!r} not found"
        return cls(
            code=ErrorCode.SYMBOL_NOT_FOUND,
            message=message,
            details={
                "symbol": symbol,
                "suggestions": suggestions,
                "filtered": bool(filters),
                "filters": filters or {},
            },
        )

    @classmethod
    def ambiguous(cls, symbol: str, candidates: list[dict[str, str]]) -> "SymbolLookupError":
        return cls(
            code=ErrorCode.SYMBOL_AMBIGUOUS,
            message=f"symbol {symbol!r} is ambiguous ({len(candidates)} candidates)",
            details={"symbol": symbol, "candidates": candidates},
        )


@contextmanager
def db_step(step: str) -> Iterator[None]:
    """Wrap database failures inside the block as StoreError naming ``step``."""
    try:
        yield
    except SQLAlchemyError as e:
        raise StoreError.step_failed(step, str(getattr(e, "orig", None) or e)) from e
