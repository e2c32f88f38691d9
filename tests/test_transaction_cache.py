"""Tests for the read-through transaction response cache."""

from __future__ import annotations

import pytest

from backend.repositories.transactions_repository import InMemoryTransactionsRepository
from backend.services.transaction_cache import CachedTransactionService, ResponseCache
from shared.models import TransactionError, TransactionRequest, TransactionResponse
from tests.fakes import build_service


class _ManualClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _CountingRepository(InMemoryTransactionsRepository):
    def __init__(self) -> None:
        super().__init__()
        self.find_by_id_calls = 0
        self.find_page_calls = 0

    def find_by_id(self, transaction_id: str):
        self.find_by_id_calls += 1
        return super().find_by_id(transaction_id)

    def find_page(self, page: int, size: int):
        self.find_page_calls += 1
        return super().find_page(page, size)


def _request(reference: str | None = None, amount: float = 10.0) -> TransactionRequest:
    return TransactionRequest(
        amount=amount,
        currency="USD",
        transaction_type="DEPOSIT",
        transaction_reference=reference,
    )


def _cached(repository: InMemoryTransactionsRepository, cache: ResponseCache | None = None):
    return CachedTransactionService(
        service=build_service(repository),
        cache=cache or ResponseCache(max_size=500, ttl_seconds=1800),
    )


def test_response_cache_expires_entries_after_ttl() -> None:
    clock = _ManualClock()
    cache = ResponseCache(max_size=10, ttl_seconds=30, clock=clock)
    cache.put("key", "value")

    clock.now = 29.9
    assert cache.get("key") == "value"

    clock.now = 30.0
    assert cache.get("key") is None
    assert len(cache) == 0


def test_response_cache_evicts_oldest_entry_when_full() -> None:
    cache = ResponseCache(max_size=2, ttl_seconds=60)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_response_cache_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        ResponseCache(max_size=0, ttl_seconds=60)


def test_get_by_id_is_served_from_cache() -> None:
    repository = _CountingRepository()
    service = _cached(repository)
    created = service.create_transaction(_request())

    first = service.get_transaction_by_id(created.id)
    second = service.get_transaction_by_id(created.id)

    assert first == second
    assert repository.find_by_id_calls == 1


def test_errors_are_not_cached() -> None:
    repository = _CountingRepository()
    service = _cached(repository)

    assert isinstance(service.get_transaction_by_id("missing"), TransactionError)
    assert isinstance(service.get_transaction_by_id("missing"), TransactionError)
    assert repository.find_by_id_calls == 2


def test_create_evicts_cached_pages() -> None:
    repository = _CountingRepository()
    service = _cached(repository)
    service.create_transaction(_request())
    assert service.get_transactions(0, 10).total_elements == 1

    service.create_transaction(_request())
    page = service.get_transactions(0, 10)

    assert page.total_elements == 2
    assert repository.find_page_calls == 2


def test_update_evicts_record_entry_and_pages() -> None:
    repository = InMemoryTransactionsRepository()
    service = _cached(repository)
    created = service.create_transaction(_request(amount=10.0))
    service.get_transaction_by_id(created.id)
    service.get_transactions(0, 10)

    service.update_transaction(created.id, _request(amount=99.0))

    assert service.get_transaction_by_id(created.id).amount == 99.0
    assert service.get_transactions(0, 10).content[0].amount == 99.0


def test_delete_evicts_record_entry_and_pages() -> None:
    repository = InMemoryTransactionsRepository()
    service = _cached(repository)
    created = service.create_transaction(_request())
    service.get_transaction_by_id(created.id)
    service.get_transactions(0, 10)

    assert service.delete_transaction(created.id) is None

    assert isinstance(service.get_transaction_by_id(created.id), TransactionError)
    assert service.get_transactions(0, 10).total_elements == 0
    assert service.exists_by_id(created.id) is False


def test_cached_results_cannot_be_mutated_by_callers() -> None:
    service = _cached(InMemoryTransactionsRepository())
    created = service.create_transaction(_request())

    fetched = service.get_transaction_by_id(created.id)
    assert isinstance(fetched, TransactionResponse)
    fetched.amount = -1.0

    assert service.get_transaction_by_id(created.id).amount == 10.0


def test_response_cache_skips_put_when_evicted_since_read() -> None:
    cache = ResponseCache(max_size=10, ttl_seconds=60)
    generation = cache.generation

    cache.evict("other")

    assert cache.put("key", "stale", generation=generation) is False
    assert cache.get("key") is None
    assert cache.put("key", "fresh", generation=cache.generation) is True
    assert cache.get("key") == "fresh"


class _InterleavingService:
    """Runs a write through the cached service while a read is in flight."""

    def __init__(self, service, write) -> None:
        self._service = service
        self._write = write

    def __getattr__(self, name: str):
        return getattr(self._service, name)

    def get_transactions(self, page: int, size: int):
        result = self._service.get_transactions(page, size)
        self._write()
        return result

    def get_transaction_by_id(self, transaction_id: str):
        result = self._service.get_transaction_by_id(transaction_id)
        self._write()
        return result


def test_page_read_racing_a_create_is_not_cached() -> None:
    repository = InMemoryTransactionsRepository()
    inner = build_service(repository)
    writes: list[object] = []
    cached = CachedTransactionService(
        service=_InterleavingService(
            inner,
            lambda: writes.append(cached.create_transaction(_request())) if not writes else None,
        ),
        cache=ResponseCache(max_size=500, ttl_seconds=1800),
    )

    in_flight = cached.get_transactions(0, 10)
    after = cached.get_transactions(0, 10)

    assert in_flight.total_elements == 0
    assert after.total_elements == 1
    assert after.total_elements == inner.get_transactions(0, 10).total_elements


def test_id_read_racing_an_update_is_not_cached() -> None:
    repository = InMemoryTransactionsRepository()
    inner = build_service(repository)
    created = inner.create_transaction(_request(amount=10.0))
    writes: list[object] = []
    cached = CachedTransactionService(
        service=_InterleavingService(
            inner,
            lambda: writes.append(cached.update_transaction(created.id, _request(amount=77.0)))
            if not writes
            else None,
        ),
        cache=ResponseCache(max_size=500, ttl_seconds=1800),
    )

    in_flight = cached.get_transaction_by_id(created.id)
    after = cached.get_transaction_by_id(created.id)

    assert in_flight.amount == 10.0
    assert after.amount == 77.0
