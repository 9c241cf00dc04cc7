"""Dataset and training-job marketplace with escrowed internal balances."""

from backend.models.marketplace import Dataset, JobStatus, TrainingJob

from .collaborators import HeightSource, LedgerClock, LocalDebugTransfer, TransferRejected, ValueTransfer
from .config import MarketplaceConfig, get_config, load_config
from .errors import (
    AlreadyExistsError,
    ErrorKind,
    InsufficientFundsError,
    InvalidParametersError,
    MarketplaceError,
    NotAuthorizedError,
    NotFoundError,
    PaymentFailedError,
)
from .service import Marketplace

__all__ = [
    "AlreadyExistsError",
    "Dataset",
    "ErrorKind",
    "HeightSource",
    "InsufficientFundsError",
    "InvalidParametersError",
    "JobStatus",
    "LedgerClock",
    "LocalDebugTransfer",
    "Marketplace",
    "MarketplaceConfig",
    "MarketplaceError",
    "NotAuthorizedError",
    "NotFoundError",
    "PaymentFailedError",
    "TrainingJob",
    "TransferRejected",
    "ValueTransfer",
    "get_config",
    "load_config",
]
