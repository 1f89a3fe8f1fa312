# tests/test_service.py
# Unit tests for the paste service: validation, id retries and read scenarios

import threading
from datetime import datetime, timedelta, timezone

import pytest

from pastelife.errors import (
    GenerationExhaustedError,
    PasteNotFound,
    StoreUnavailable,
    ValidationError,
)
from pastelife.service import PasteService, format_timestamp


class TestCreateValidation:

    @pytest.mark.parametrize("content", ["", "   ", "\n\t", None, 42])
    def test_rejects_empty_or_non_text_content(self, service, store, content):
        with pytest.raises(ValidationError):
            service.create_paste(content)
        assert store.pastes == {}

    @pytest.mark.parametrize("value", [0, -1, 1.5, "10", True])
    def test_rejects_bad_ttl(self, service, value):
        with pytest.raises(ValidationError):
            service.create_paste("hi", ttl_seconds=value)

    @pytest.mark.parametrize("value", [0, -3, 2.0, "1", False])
    def test_rejects_bad_max_views(self, service, value):
        with pytest.raises(ValidationError):
            service.create_paste("hi", max_views=value)

    def test_returns_id_and_url(self, service, store):
        created = service.create_paste("hi")
        assert created.url == f"http://paste.test/p/{created.id}"
        assert len(created.id) == 10
        assert created.id in store.pastes


class TestIdCollisions:

    def test_collision_is_retried_transparently(self, store, t0):
        ids = iter(["takenid000", "takenid000", "freshid000"])
        service = PasteService(store, "http://paste.test", id_generator=lambda: next(ids), clock=lambda: t0)

        first = service.create_paste("first")
        second = service.create_paste("second")

        assert first.id == "takenid000"
        assert second.id == "freshid000"
        assert service.read_paste(first.id).content == "first"
        assert service.read_paste(second.id).content == "second"

    def test_gives_up_after_bound(self, store, t0):
        service = PasteService(
            store, "http://paste.test",
            id_generator=lambda: "sameid0000", max_attempts=3, clock=lambda: t0,
        )
        service.create_paste("first")

        with pytest.raises(GenerationExhaustedError):
            service.create_paste("second")
        assert service.read_paste("sameid0000").content == "first"


class TestReadScenarios:

    def test_single_view_paste(self, service):
        created = service.create_paste("hello", max_views=1)

        view = service.read_paste(created.id)
        assert view.content == "hello"
        assert view.remaining_views == 0

        with pytest.raises(PasteNotFound):
            service.read_paste(created.id)

    def test_ttl_paste(self, service, t0):
        created = service.create_paste("hi", ttl_seconds=10, now=t0)

        view = service.read_paste(created.id, now=t0 + timedelta(seconds=5))
        assert view.content == "hi"
        assert view.remaining_views is None
        assert view.expires_at == "2024-01-01T12:00:10.000Z"

        with pytest.raises(PasteNotFound):
            service.read_paste(created.id, now=t0 + timedelta(seconds=11))

    def test_ttl_boundary_is_expired(self, service, t0):
        created = service.create_paste("hi", ttl_seconds=10, now=t0)
        with pytest.raises(PasteNotFound):
            service.read_paste(created.id, now=t0 + timedelta(seconds=10))

    def test_ttl_paste_ignores_read_count(self, service, t0):
        created = service.create_paste("hi", ttl_seconds=60, now=t0)
        for i in range(50):
            assert service.read_paste(created.id, now=t0 + timedelta(seconds=i)).content == "hi"

    def test_unlimited_paste(self, service, t0):
        created = service.create_paste("x")
        for days in range(0, 1000, 97):
            view = service.read_paste(created.id, now=t0 + timedelta(days=days))
            assert view.remaining_views is None
            assert view.expires_at is None

    def test_n_views_then_not_found(self, service):
        created = service.create_paste("x", max_views=3)
        assert [service.read_paste(created.id).remaining_views for _ in range(3)] == [2, 1, 0]
        with pytest.raises(PasteNotFound):
            service.read_paste(created.id)

    def test_non_decrementing_read(self, service, store):
        created = service.create_paste("x", max_views=2)
        for _ in range(5):
            assert service.read_paste(created.id, decrement=False).remaining_views == 2
        assert store.pastes[created.id].remaining_views == 2

    def test_expired_and_missing_look_the_same(self, service, t0):
        created = service.create_paste("x", ttl_seconds=1, now=t0)
        later = t0 + timedelta(seconds=2)

        with pytest.raises(PasteNotFound) as expired:
            service.read_paste(created.id, now=later)
        with pytest.raises(PasteNotFound) as missing:
            service.read_paste("neverexist", now=later)
        assert type(expired.value) is type(missing.value)

    def test_concurrent_reads_of_last_view(self, service):
        created = service.create_paste("x", max_views=1)
        barrier = threading.Barrier(2)
        outcomes = []

        def reader():
            barrier.wait()
            try:
                service.read_paste(created.id)
                outcomes.append("ok")
            except PasteNotFound:
                outcomes.append("not_found")

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["not_found", "ok"]


class TestStoreFailures:

    def test_unavailable_store_is_not_retried(self, t0):
        calls = []

        class DownStore:
            def insert(self, paste):
                calls.append(paste.id)
                raise StoreUnavailable("down")

        service = PasteService(DownStore(), "http://paste.test", clock=lambda: t0)
        with pytest.raises(StoreUnavailable):
            service.create_paste("x")
        assert len(calls) == 1


def test_purge_expired(service, store, t0):
    service.create_paste("a", ttl_seconds=1, now=t0)
    kept = service.create_paste("b", now=t0)
    assert service.purge_expired(now=t0 + timedelta(seconds=5)) == 1
    assert list(store.pastes) == [kept.id]


def test_format_timestamp_is_utc_millis():
    value = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
    assert format_timestamp(value) == "2024-05-06T07:08:09.123Z"


class TestNaiveTimestamps:
    """Naive datetimes passed as `now` are treated as UTC."""

    def test_naive_create_then_default_clock_read(self, service):
        created = service.create_paste("hi", ttl_seconds=10, now=datetime(2024, 1, 1, 12))
        view = service.read_paste(created.id)
        assert view.expires_at == "2024-01-01T12:00:10.000Z"

    def test_aware_create_then_naive_read(self, service, t0):
        created = service.create_paste("hi", ttl_seconds=10, now=t0)
        assert service.read_paste(created.id, now=datetime(2024, 1, 1, 12, 0, 5)).content == "hi"
        with pytest.raises(PasteNotFound):
            service.read_paste(created.id, now=datetime(2024, 1, 1, 12, 0, 10))

    def test_naive_purge(self, service, t0):
        service.create_paste("hi", ttl_seconds=1, now=t0)
        assert service.purge_expired(now=datetime(2024, 1, 1, 12, 0, 2)) == 1

    def test_format_naive_timestamp_as_utc(self):
        assert format_timestamp(datetime(2024, 5, 6, 7, 8, 9)) == "2024-05-06T07:08:09.000Z"

    def test_offset_timestamp_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        assert format_timestamp(datetime(2024, 5, 6, 9, 0, tzinfo=plus_two)) == "2024-05-06T07:00:00.000Z"
