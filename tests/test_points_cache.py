"""Tests for the write-once computed points cache."""

import threading

import pytest

from src.projections.models import ProjectionSource, StatRecord
from src.scoring.errors import DuplicateKeyError, MissingFieldError, PersistenceError
from src.scoring.models import ComputedPoints, ScoringRule
from src.scoring.points_cache import ComputedPointsCache, require_key


@pytest.fixture
def cache(store):
    return ComputedPointsCache(store)


class TestRequireKey:
    def test_keyed_record_passes(self, make_record):
        require_key(make_record())

    @pytest.mark.parametrize(
        "player_id, source",
        [(None, ProjectionSource.ATC), ("", ProjectionSource.ATC), ("p1", None)],
    )
    def test_missing_key_field(self, player_id, source):
        with pytest.raises(MissingFieldError):
            require_key(StatRecord(player_id=player_id, projection_source=source))


class TestPut:
    def test_put_then_get(self, cache):
        points = ComputedPoints("p1", ProjectionSource.ATC, "DefaultPoints", 42.0)
        cache.put(points)
        assert cache.get("p1", ProjectionSource.ATC, "DefaultPoints") == points

    def test_second_put_for_same_key_fails(self, cache, store):
        cache.put(ComputedPoints("p1", ProjectionSource.ATC, "DefaultPoints", 42.0))
        with pytest.raises(DuplicateKeyError):
            cache.put(ComputedPoints("p1", ProjectionSource.ATC, "DefaultPoints", 1.0))

        assert store.count_computed_points() == 1
        assert cache.get("p1", ProjectionSource.ATC, "DefaultPoints").amount == 42.0

    def test_absent_key(self, cache):
        assert cache.get("p1", ProjectionSource.ATC, "DefaultPoints") is None


class TestGetOrCompute:
    def test_computes_and_stores_on_first_use(self, cache, store, make_record, default_rule):
        record = make_record()
        assert cache.get_or_compute(record, default_rule) == 7.0
        assert store.count_computed_points() == 1

    def test_returns_cached_value(self, cache, store, make_record, default_rule):
        record = make_record()
        cache.put(ComputedPoints("p1", ProjectionSource.STEAMER, "DefaultPoints", 99.0))
        assert cache.get_or_compute(record, default_rule) == 99.0
        assert store.count_computed_points() == 1

    def test_each_rule_cached_separately(self, cache, store, make_record, default_rule):
        record = make_record()
        doubled = ScoringRule(name="Doubled", total_bases=2, runs=2, rbi=2,
                              walks=2, strikeouts=-2)
        assert cache.get_or_compute(record, default_rule) == 7.0
        assert cache.get_or_compute(record, doubled) == 14.0
        assert store.count_computed_points(player_id="p1") == 2

    def test_missing_key_raises_without_writing(self, cache, store, default_rule):
        record = StatRecord(player_id="p1", projection_source=None, runs=5)
        with pytest.raises(MissingFieldError):
            cache.get_or_compute(record, default_rule)
        assert store.count_computed_points() == 0

    def test_failed_write_leaves_key_absent(
        self, cache, store, make_record, default_rule, monkeypatch
    ):
        record = make_record()

        def broken(points, conn=None):
            raise PersistenceError("database is locked", transient=True)

        monkeypatch.setattr(store, "insert_computed_points_if_absent", broken)
        with pytest.raises(PersistenceError):
            cache.get_or_compute(record, default_rule)
        assert cache.get("p1", ProjectionSource.STEAMER, "DefaultPoints") is None

        monkeypatch.undo()
        assert cache.get_or_compute(record, default_rule) == 7.0
        assert store.count_computed_points() == 1

    def test_concurrent_callers_store_one_entry(self, cache, store, make_record, default_rule):
        record = make_record()
        results = []
        barrier = threading.Barrier(4)

        def worker():
            barrier.wait()
            results.append(cache.get_or_compute(record, default_rule))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == [7.0] * 4
        assert store.count_computed_points() == 1


class TestStatRecordFor:
    def test_finds_source_record(self, cache, store, make_record):
        record = make_record(player_id="p3", source=ProjectionSource.THEBATX, runs=40)
        store.add_stat_records([record])
        points = ComputedPoints("p3", ProjectionSource.THEBATX, "DefaultPoints", 10.0)
        assert cache.stat_record_for(points) == record

    def test_missing_record(self, cache):
        points = ComputedPoints("p3", ProjectionSource.THEBATX, "DefaultPoints", 10.0)
        assert cache.stat_record_for(points) is None
