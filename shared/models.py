"""Pydantic contracts shared across the transactions store, service and API."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TransactionErrorCode(str, Enum):
    """Stable error codes returned by the store and service layers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TransactionError(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: TransactionErrorCode
    message: str
    details: dict[str, object] | None = None


class TransactionRecord(BaseModel):
    """Stored transaction entity."""

    model_config = ConfigDict(extra="forbid")

    id: str
    amount: float
    currency: str
    transaction_type: str
    transaction_reference: str | None = None
    timestamp: datetime


class _WireModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TransactionRequest(_WireModel):
    """Inbound create/update payload.

    Amount, currency and type rules are checked by `TransactionService`.
    """

    amount: float = 0.0
    currency: str | None = None
    transaction_type: str | None = None
    transaction_reference: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def reject_boolean_amount(cls, value: object) -> object:
        if isinstance(value, bool):
            raise ValueError("amount must be a number, not a boolean")
        return value


class TransactionResponse(_WireModel):
    id: str
    amount: float
    currency: str
    transaction_type: str
    transaction_reference: str | None = None
    timestamp: datetime

    @classmethod
    def from_record(cls, record: TransactionRecord) -> TransactionResponse:
        return cls(
            id=record.id,
            amount=record.amount,
            currency=record.currency,
            transaction_type=record.transaction_type,
            transaction_reference=record.transaction_reference,
            timestamp=record.timestamp,
        )


class TransactionPage(_WireModel):
    """Page envelope returned by the paginated listing."""

    content: list[TransactionResponse] = Field(default_factory=list)
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool

    @classmethod
    def build(
        cls,
        *,
        content: list[TransactionResponse],
        page: int,
        size: int,
        total_elements: int,
    ) -> TransactionPage:
        total_pages = math.ceil(total_elements / size) if size > 0 else 0
        return cls(
            content=content,
            page=page,
            size=size,
            total_elements=total_elements,
            total_pages=total_pages,
            first=page == 0,
            last=page >= total_pages - 1,
        )


class ErrorResponse(BaseModel):
    """HTTP failure envelope."""

    model_config = ConfigDict(extra="forbid")

    status: int
    error: str
    message: str
    timestamp: datetime
