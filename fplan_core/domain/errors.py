from __future__ import annotations


class InvalidEventError(ValueError):
    """Raised when a scenario or plan event violates a basic invariant."""


class InvalidAssumptionError(ValueError):
    """Raised when a portfolio or income/expense assumption is malformed."""
