"""Pydantic payloads validating operation arguments before any state is read."""

from __future__ import annotations

from typing import Annotated, Any, List, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
)

from .errors import InvalidParametersError

MAX_UINT = 2**63 - 1
"""Largest amount, price or id the ledger tables can hold."""

MAX_NAME_LENGTH = 100
MAX_URL_LENGTH = 256
MAX_CATEGORY_LENGTH = 50
MAX_DATASETS_PER_JOB = 20

Identity = Annotated[StrictStr, Field(min_length=1)]
UInt = Annotated[StrictInt, Field(ge=0, le=MAX_UINT)]
PositiveAmount = Annotated[StrictInt, Field(gt=0, le=MAX_UINT)]

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class DatasetIn(_Payload):
    """Listing fields supplied when registering a dataset."""

    name: StrictStr = Field(..., max_length=MAX_NAME_LENGTH)
    metadata_url: StrictStr = Field(..., max_length=MAX_URL_LENGTH)
    price_per_use: UInt
    category: StrictStr = Field(..., max_length=MAX_CATEGORY_LENGTH)


class DatasetUpdateIn(DatasetIn):
    """Replacement values for every mutable dataset field."""

    active: StrictBool


class TrainingJobIn(_Payload):
    name: StrictStr = Field(..., max_length=MAX_NAME_LENGTH)
    dataset_ids: List[UInt] = Field(default_factory=list, max_length=MAX_DATASETS_PER_JOB)


class CompletionIn(_Payload):
    result_url: StrictStr = Field(..., max_length=MAX_URL_LENGTH)


class AmountIn(_Payload):
    amount: PositiveAmount


_IDENTITY_ADAPTER: TypeAdapter[str] = TypeAdapter(Identity)
_RECORD_ID_ADAPTER: TypeAdapter[int] = TypeAdapter(UInt)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "value"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_payload(model: Type[_ModelT], **fields: Any) -> _ModelT:
    """Validate ``fields`` against ``model``, raising the ledger's error kind."""

    try:
        return model(**fields)
    except ValidationError as exc:
        raise InvalidParametersError(_describe(exc)) from exc


def require_identity(value: Any) -> str:
    try:
        return _IDENTITY_ADAPTER.validate_python(value)
    except ValidationError as exc:
        raise InvalidParametersError(f"invalid identity: {_describe(exc)}") from exc


def require_record_id(value: Any) -> int:
    try:
        return _RECORD_ID_ADAPTER.validate_python(value)
    except ValidationError as exc:
        raise InvalidParametersError(f"invalid record id: {_describe(exc)}") from exc


__all__ = [
    "AmountIn",
    "CompletionIn",
    "DatasetIn",
    "DatasetUpdateIn",
    "MAX_CATEGORY_LENGTH",
    "MAX_DATASETS_PER_JOB",
    "MAX_NAME_LENGTH",
    "MAX_UINT",
    "MAX_URL_LENGTH",
    "TrainingJobIn",
    "parse_payload",
    "require_identity",
    "require_record_id",
]
