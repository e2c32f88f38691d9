"""Transaction service: business rules over the transactions repository.

Every operation returns either its result or a `TransactionError`; domain
failures are never raised. The API layer maps error codes to HTTP responses.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from backend.repositories.transactions_repository import TransactionsRepository, is_blank
from shared.models import (
    TransactionError,
    TransactionErrorCode,
    TransactionPage,
    TransactionRecord,
    TransactionRequest,
    TransactionResponse,
)


logger = logging.getLogger(__name__)


SUPPORTED_CURRENCIES = frozenset({"USD", "EUR", "GBP", "JPY", "CNY", "AUD", "CAD"})
SUPPORTED_TRANSACTION_TYPES = frozenset({"DEPOSIT", "WITHDRAWAL", "TRANSFER"})
MAX_PAGE_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_transaction_id() -> str:
    return str(uuid4())


def _validation_error(message: str, **details: object) -> TransactionError:
    return TransactionError(
        code=TransactionErrorCode.VALIDATION_ERROR,
        message=message,
        details=details or None,
    )


def _not_found(transaction_id: str) -> TransactionError:
    return TransactionError(
        code=TransactionErrorCode.NOT_FOUND,
        message=f"Not Found Transaction ID: {transaction_id}",
        details={"id": transaction_id},
    )


def _duplicate_reference(reference: str) -> TransactionError:
    return TransactionError(
        code=TransactionErrorCode.CONFLICT,
        message=f"Duplicated Transaction Reference:{reference}",
        details={"transaction_reference": reference},
    )


def validate_transaction_request(request: TransactionRequest | None) -> TransactionError | None:
    """Check amount, currency and type in that order; return the first violation."""

    if request is None:
        return _validation_error("Transaction request cannot be empty.")

    if not math.isfinite(request.amount) or request.amount <= 0.0:
        return _validation_error(
            "Invalid Transaction Amount, must be over 0",
            field="amount",
            value=request.amount,
        )

    currency = request.currency
    if is_blank(currency) or currency.upper() not in SUPPORTED_CURRENCIES:
        return _validation_error(f"Invalid Currency: {currency}", field="currency", value=currency)

    transaction_type = request.transaction_type
    if is_blank(transaction_type) or transaction_type.upper() not in SUPPORTED_TRANSACTION_TYPES:
        return _validation_error(
            f"Invalid Transaction Type: {transaction_type}",
            field="transactionType",
            value=transaction_type,
        )

    return None


@dataclass(slots=True)
class TransactionService:
    transactions_repository: TransactionsRepository
    clock: Callable[[], datetime] = field(default=_utcnow)
    id_factory: Callable[[], str] = field(default=_new_transaction_id)

    def create_transaction(
        self, request: TransactionRequest | None
    ) -> TransactionResponse | TransactionError:
        logger.info("transaction_create_started request=%s", request)

        error = validate_transaction_request(request)
        if error is not None:
            logger.info("transaction_create_rejected reason=%s", error.message)
            return error

        reference = request.transaction_reference
        if not is_blank(reference) and self.transactions_repository.exists_by_reference(reference):
            logger.info("transaction_create_rejected reason=duplicate_reference reference=%s", reference)
            return _duplicate_reference(reference)

        record = TransactionRecord(
            id=self.id_factory(),
            amount=request.amount,
            currency=request.currency,
            transaction_type=request.transaction_type,
            transaction_reference=reference,
            timestamp=self.clock(),
        )
        saved = self.transactions_repository.save(record)
        if isinstance(saved, TransactionError):
            # Another request claimed the reference between the check and the save.
            logger.info("transaction_create_rejected reason=store_conflict reference=%s", reference)
            return _duplicate_reference(reference)

        logger.info("transaction_created id=%s", saved.id)
        return TransactionResponse.from_record(saved)

    def get_transaction_by_id(self, transaction_id: str) -> TransactionResponse | TransactionError:
        logger.debug("transaction_get id=%s", transaction_id)

        if is_blank(transaction_id):
            return _validation_error("Transaction ID cannot be empty.", field="id")

        record = self.transactions_repository.find_by_id(transaction_id)
        if record is None:
            return _not_found(transaction_id)
        return TransactionResponse.from_record(record)

    def get_transactions(self, page: int, size: int) -> TransactionPage | TransactionError:
        logger.debug("transaction_list page=%s size=%s", page, size)

        if page < 0:
            return _validation_error("Page number should not be less than 0.", field="page", value=page)
        if size <= 0 or size > MAX_PAGE_SIZE:
            return _validation_error(
                f"Page size should be between 1 to {MAX_PAGE_SIZE}.",
                field="size",
                value=size,
            )

        records = self.transactions_repository.find_page(page, size)
        total_elements = self.transactions_repository.count()
        return TransactionPage.build(
            content=[TransactionResponse.from_record(record) for record in records],
            page=page,
            size=size,
            total_elements=total_elements,
        )

    def update_transaction(
        self, transaction_id: str, request: TransactionRequest | None
    ) -> TransactionResponse | TransactionError:
        logger.info("transaction_update_started id=%s request=%s", transaction_id, request)

        if is_blank(transaction_id):
            return _validation_error("Transaction ID cannot be empty.", field="id")

        error = validate_transaction_request(request)
        if error is not None:
            logger.info("transaction_update_rejected id=%s reason=%s", transaction_id, error.message)
            return error

        existing = self.transactions_repository.find_by_id(transaction_id)
        if existing is None:
            return _not_found(transaction_id)

        updated = existing.model_copy(
            update={
                "amount": request.amount,
                "currency": request.currency,
                "transaction_type": request.transaction_type,
                "transaction_reference": request.transaction_reference,
                "timestamp": self.clock(),
            }
        )
        saved = self.transactions_repository.save(updated)
        if isinstance(saved, TransactionError):
            logger.info(
                "transaction_update_rejected id=%s reason=store_conflict reference=%s",
                transaction_id,
                request.transaction_reference,
            )
            return _duplicate_reference(request.transaction_reference)

        logger.info("transaction_updated id=%s", saved.id)
        return TransactionResponse.from_record(saved)

    def delete_transaction(self, transaction_id: str) -> TransactionError | None:
        logger.info("transaction_delete_started id=%s", transaction_id)

        if is_blank(transaction_id):
            return _validation_error("Transaction ID cannot be empty.", field="id")

        if not self.transactions_repository.exists_by_id(transaction_id):
            return _not_found(transaction_id)

        if not self.transactions_repository.delete_by_id(transaction_id):
            logger.error(
                "transaction_delete_inconsistent id=%s; record existed but delete reported nothing removed",
                transaction_id,
            )
            return TransactionError(
                code=TransactionErrorCode.INTERNAL_ERROR,
                message=f"Transaction delete failed for ID: {transaction_id}",
                details={"id": transaction_id},
            )

        logger.info("transaction_deleted id=%s", transaction_id)
        return None

    def exists_by_id(self, transaction_id: str) -> bool:
        if is_blank(transaction_id):
            return False
        return self.transactions_repository.exists_by_id(transaction_id)
