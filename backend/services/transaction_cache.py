"""Read-through response cache in front of `TransactionService`.

Lookups by id and page listings are cached; every write evicts the listings
and, for update/delete, the entry of the touched id. Errors are not cached.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable

from backend.services.transaction_service import TransactionService
from shared.models import (
    TransactionError,
    TransactionPage,
    TransactionRequest,
    TransactionResponse,
)


logger = logging.getLogger(__name__)


_BY_ID = "by_id"
_PAGE = "page"


class ResponseCache:
    """Bounded TTL cache; the oldest entry is evicted first when full."""

    def __init__(
        self,
        *,
        max_size: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[Hashable, tuple[float, object]] = OrderedDict()
        self._generation = 0

    @property
    def generation(self) -> int:
        """Counter bumped by every eviction.

        Read it before computing a value and pass it to `put`; the value is
        dropped if an eviction happened in between.
        """
        with self._lock:
            return self._generation

    def get(self, key: Hashable) -> object | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def put(self, key: Hashable, value: object, *, generation: int | None = None) -> bool:
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries.pop(key, None)
            self._entries[key] = (self._clock() + self._ttl_seconds, value)
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)
            return True

    def evict(self, key: Hashable) -> None:
        with self._lock:
            self._generation += 1
            self._entries.pop(key, None)

    def evict_where(self, predicate: Callable[[Hashable], bool]) -> int:
        with self._lock:
            self._generation += 1
            keys = [key for key in self._entries if predicate(key)]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _is_page_key(key: Hashable) -> bool:
    return isinstance(key, tuple) and bool(key) and key[0] == _PAGE


class CachedTransactionService:
    """Same operations as `TransactionService`, with cached reads."""

    def __init__(self, service: TransactionService, cache: ResponseCache) -> None:
        self._service = service
        self._cache = cache

    def _evict_pages(self) -> None:
        evicted = self._cache.evict_where(_is_page_key)
        logger.debug("transaction_cache_pages_evicted count=%s", evicted)

    def _store(self, key: Hashable, value: object, generation: int) -> None:
        if not self._cache.put(key, value, generation=generation):
            logger.debug("transaction_cache_fill_skipped key=%s reason=evicted_during_read", key)

    def create_transaction(
        self, request: TransactionRequest | None
    ) -> TransactionResponse | TransactionError:
        try:
            return self._service.create_transaction(request)
        finally:
            self._evict_pages()

    def get_transaction_by_id(self, transaction_id: str) -> TransactionResponse | TransactionError:
        key = (_BY_ID, transaction_id)
        cached = self._cache.get(key)
        if isinstance(cached, TransactionResponse):
            logger.debug("transaction_cache_hit key=%s", key)
            return cached.model_copy(deep=True)

        generation = self._cache.generation
        result = self._service.get_transaction_by_id(transaction_id)
        if isinstance(result, TransactionResponse):
            self._store(key, result.model_copy(deep=True), generation)
        return result

    def get_transactions(self, page: int, size: int) -> TransactionPage | TransactionError:
        key = (_PAGE, page, size)
        cached = self._cache.get(key)
        if isinstance(cached, TransactionPage):
            logger.debug("transaction_cache_hit key=%s", key)
            return cached.model_copy(deep=True)

        generation = self._cache.generation
        result = self._service.get_transactions(page, size)
        if isinstance(result, TransactionPage):
            self._store(key, result.model_copy(deep=True), generation)
        return result

    def update_transaction(
        self, transaction_id: str, request: TransactionRequest | None
    ) -> TransactionResponse | TransactionError:
        try:
            return self._service.update_transaction(transaction_id, request)
        finally:
            self._cache.evict((_BY_ID, transaction_id))
            self._evict_pages()

    def delete_transaction(self, transaction_id: str) -> TransactionError | None:
        try:
            return self._service.delete_transaction(transaction_id)
        finally:
            self._cache.evict((_BY_ID, transaction_id))
            self._evict_pages()

    def exists_by_id(self, transaction_id: str) -> bool:
        return self._service.exists_by_id(transaction_id)
