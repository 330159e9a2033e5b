"""
Save system error taxonomy.

Public save/load operations never raise these across their boundary; they
are raised internally and converted into result values carrying an error
string.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from crawlsave.save.validator import ValidationResult


class SaveError(Exception):
    """Base exception for save/load errors."""


class ValidationError(SaveError):
    """
    A record failed validation.

    Attributes:
        section: Record section the failure belongs to
        message: Human-readable description
        result: Full validation result, when available
    """

    def __init__(
        self,
        section: str,
        message: str,
        result: Optional[ValidationResult] = None,
    ):
        super().__init__(f"{section}: {message}")
        self.section = section
        self.message = message
        self.result = result


class SerializationError(SaveError):
    """Raised when a record cannot be turned into a blob."""


class DeserializationError(SaveError):
    """Raised when a blob is malformed or corrupt."""


class StorageError(SaveError):
    """Raised when the storage backend fails."""


class RecoveryExhausted(SaveError):
    """Raised when no valid backup or fallback save exists."""


class InvalidSlotError(SaveError, ValueError):
    """Raised for slot ids outside the configured slot space."""
