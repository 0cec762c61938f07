"""Validation DTOs shared by the engines, ingestion boundary and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional
        field path, and optional details dict.

    Non-goals:
        - Does NOT raise -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Guarantees:
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    @classmethod
    def from_errors(cls, errors: list[ValidationError] | tuple[ValidationError, ...]) -> ValidationResult:
        return cls.failure(*errors) if errors else cls.success()

    @property
    def error_codes(self) -> tuple[str, ...]:
        return tuple(e.code for e in self.errors)

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(e.message for e in self.errors)

    def __bool__(self) -> bool:
        return self.is_valid
