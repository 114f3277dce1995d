# src/streaklane/core/errors.py

"""
Error taxonomy shared by the store, the engines and the service layer.

Callers at the outer edge (console, HTTP glue) catch StreaklaneError and render it;
everything below propagates.
"""

from __future__ import annotations


class StreaklaneError(Exception):
    """Base class for all errors surfaced to callers."""


class NotFoundError(StreaklaneError):
    """The record does not exist or does not belong to the requesting user."""


class OwnershipError(NotFoundError):
    """
    The record exists but is owned by someone else.

    Subclasses NotFoundError so callers cannot tell the two apart.
    """


class ValidationError(StreaklaneError):
    """Input was rejected before any write was attempted."""


class TransientStoreError(StreaklaneError):
    """The store transaction failed and was rolled back; the whole operation may be retried."""
