"""Exceptions and validation codes for the allocation engine."""

from __future__ import annotations

from enum import Enum


class AllocatorError(ValueError):
    """Base class for hard input errors raised at the module boundary."""


class InvalidInputError(AllocatorError):
    """Input has the wrong shape (non-string text, negative counts)."""


class UnrecognizedMethodError(AllocatorError):
    """Allocation method is not one of the supported values."""

    def __init__(self, method: object):
        self.method = method
        super().__init__(
            f"Unrecognized allocation method {method!r}; "
            "expected 'allocate by priority' or 'allocate by pages'."
        )


class ValidationCode(str, Enum):
    """Soft, user-facing validation outcomes. Reported, never raised."""

    DUPLICATE_DDN = "DuplicateDdn"
    UNKNOWN_DDN = "UnknownDdn"
    OVER_ALLOCATED = "OverAllocated"
