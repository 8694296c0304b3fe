"""
LeakGuard exceptions.

Builders and the scanner never raise for degraded data; they report through
result objects. These are only raised on explicit assertion paths and on
programming errors (unknown provider names).
"""

from __future__ import annotations


class LeakGuardError(Exception):
    """Base class for all LeakGuard errors."""


class ConstraintValidationError(LeakGuardError):
    """A ResponseConstraints object violates one or more structural invariants."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid response constraints: " + "; ".join(self.errors))


class UnknownProviderError(LeakGuardError, ValueError):
    """No provider is registered under the requested name."""
