"""Error taxonomy shared by every marketplace operation."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorKind(str, Enum):
    NOT_AUTHORIZED = "NotAuthorized"
    NOT_FOUND = "NotFound"
    INVALID_PARAMETERS = "InvalidParameters"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    PAYMENT_FAILED = "PaymentFailed"
    ALREADY_EXISTS = "AlreadyExists"


class MarketplaceError(Exception):
    """Base class for failures that abort an operation without side effects.

    ``kind`` tags the failure so callers can branch on the category without
    matching on exception classes.
    """

    kind: ClassVar[ErrorKind]

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NotAuthorizedError(MarketplaceError):
    kind = ErrorKind.NOT_AUTHORIZED


class NotFoundError(MarketplaceError):
    kind = ErrorKind.NOT_FOUND


class InvalidParametersError(MarketplaceError):
    kind = ErrorKind.INVALID_PARAMETERS


class InsufficientFundsError(MarketplaceError):
    kind = ErrorKind.INSUFFICIENT_FUNDS


class PaymentFailedError(MarketplaceError):
    kind = ErrorKind.PAYMENT_FAILED


class AlreadyExistsError(MarketplaceError):
    """Reserved for duplicate-registration guards; no operation raises it yet."""

    kind = ErrorKind.ALREADY_EXISTS


__all__ = [
    "AlreadyExistsError",
    "ErrorKind",
    "InsufficientFundsError",
    "InvalidParametersError",
    "MarketplaceError",
    "NotAuthorizedError",
    "NotFoundError",
    "PaymentFailedError",
]
