"""Composition root for backend services."""

from __future__ import annotations

import logging

from backend.repositories.transactions_repository import (
    InMemoryTransactionsRepository,
    TransactionsRepository,
)
from backend.services.transaction_cache import CachedTransactionService, ResponseCache
from backend.services.transaction_service import TransactionService
from shared import config


logger = logging.getLogger(__name__)


TransactionServiceLike = TransactionService | CachedTransactionService


def build_transaction_service(
    transactions_repository: TransactionsRepository | None = None,
) -> TransactionServiceLike:
    """Build the transaction service over one process-wide store.

    The response cache is layered on top when enabled by configuration.
    """

    repository = transactions_repository
    if repository is None:
        repository = InMemoryTransactionsRepository()
    service = TransactionService(transactions_repository=repository)

    if not config.transactions_cache_enabled():
        logger.info("transaction_cache_disabled")
        return service

    max_size = config.transactions_cache_max_size()
    ttl_seconds = config.transactions_cache_ttl_seconds()
    logger.info("transaction_cache_enabled max_size=%s ttl_seconds=%s", max_size, ttl_seconds)
    return CachedTransactionService(
        service=service,
        cache=ResponseCache(max_size=max_size, ttl_seconds=ttl_seconds),
    )
