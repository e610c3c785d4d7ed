"""Domain exceptions raised by the commission engine and the data layer.

Routers do not catch these; ``main.py`` registers a single handler that maps
each class to its HTTP status.
"""
from __future__ import annotations


class CommissionDeskError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRate(CommissionDeskError):
    """Commission rate outside [0, 100]."""


class InvalidRole(InvalidRate):
    """Nonzero commission rate requested for an account that cannot hold one."""


class InvalidCampaign(CommissionDeskError):
    """Order creation against a missing or non-active campaign."""


class RateOverrideRejected(CommissionDeskError):
    """Attempt to change an order's frozen rate snapshot."""

    status_code = 409


class NotFound(CommissionDeskError):
    status_code = 404


class AuthorizationDenied(CommissionDeskError):
    status_code = 403


__all__ = [
    "AuthorizationDenied",
    "CommissionDeskError",
    "InvalidCampaign",
    "InvalidRate",
    "InvalidRole",
    "NotFound",
    "RateOverrideRejected",
]
