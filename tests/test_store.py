"""Tests for the SQLite projection store."""

import sqlite3

import pytest

from src.projections.models import ProjectionSource, StatRecord
from src.scoring.errors import DuplicateKeyError, NameConflictError, PersistenceError
from src.scoring.models import ComputedPoints, ScoringRule
from src.scoring.store import ProjectionStore


def _points(player_id="p1", source=ProjectionSource.STEAMER, rule="DefaultPoints", amount=7.0):
    return ComputedPoints(
        player_id=player_id,
        projection_source=source,
        scoring_rule_name=rule,
        amount=amount,
    )


# ── Setup ────────────────────────────────────────────────────────────


class TestStoreInit:
    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "points.sqlite"
        ProjectionStore(path)
        assert path.exists()

    def test_reopen_keeps_data(self, tmp_path, make_record):
        path = tmp_path / "points.sqlite"
        ProjectionStore(path).add_stat_records([make_record()])
        assert ProjectionStore(path).count_stat_records() == 1


# ── Stat records ─────────────────────────────────────────────────────


class TestStatRecords:
    def test_add_and_get(self, store, make_record):
        record = make_record(player_id="p7", runs=12)
        assert store.add_stat_records([record]) == 1

        loaded = store.get_stat_record("p7", ProjectionSource.STEAMER)
        assert loaded == record

    def test_duplicate_key_ignored(self, store, make_record):
        store.add_stat_records([make_record(runs=1)])
        assert store.add_stat_records([make_record(runs=99)]) == 0
        assert store.get_stat_record("p1", ProjectionSource.STEAMER).runs == 1

    def test_same_player_different_sources(self, store, make_record):
        inserted = store.add_stat_records(
            [make_record(source=ProjectionSource.STEAMER), make_record(source=ProjectionSource.ATC)]
        )
        assert inserted == 2

    def test_unkeyed_records_are_stored(self, store):
        store.add_stat_records([
            StatRecord(player_id="p1", projection_source=None),
            StatRecord(player_id=None, projection_source=ProjectionSource.ATC),
        ])
        assert store.count_stat_records() == 2

    def test_fetch_pages_in_insertion_order(self, store, make_record):
        store.add_stat_records([make_record(player_id=f"p{i}") for i in range(7)])
        first = store.fetch_stat_records(0, 3)
        second = store.fetch_stat_records(3, 3)
        last = store.fetch_stat_records(6, 3)

        ids = [r.player_id for r in first + second + last]
        assert ids == [f"p{i}" for i in range(7)]
        assert store.fetch_stat_records(7, 3) == []

    def test_missing_record(self, store):
        assert store.get_stat_record("nobody", ProjectionSource.ATC) is None

    def test_replace_clears_cached_points(self, store, make_record):
        store.add_stat_records([make_record(source=ProjectionSource.MY_PROJECTIONS)])
        store.insert_computed_points(_points(source=ProjectionSource.MY_PROJECTIONS))
        store.insert_computed_points(
            _points(source=ProjectionSource.MY_PROJECTIONS, rule="Other")
        )

        removed = store.replace_stat_record(
            make_record(source=ProjectionSource.MY_PROJECTIONS, runs=50)
        )

        assert removed == 2
        assert store.count_stat_records() == 1
        assert store.get_stat_record("p1", ProjectionSource.MY_PROJECTIONS).runs == 50
        assert store.count_computed_points(player_id="p1") == 0

    def test_replace_requires_key(self, store):
        with pytest.raises(ValueError):
            store.replace_stat_record(StatRecord(player_id=None, projection_source=None))

    def test_unset_stats_stored_as_zero(self, store):
        record = StatRecord(
            player_id="p1", projection_source=ProjectionSource.ATC, runs=3, rbi=None
        )
        assert store.add_stat_records([record]) == 1

        loaded = store.get_stat_record("p1", ProjectionSource.ATC)
        assert loaded.runs == 3.0
        assert loaded.rbi == 0.0

    def test_replace_clears_resume_cursors(self, store, make_record):
        store.commit_points_batch([], "DefaultPoints", next_offset=10)
        store.commit_points_batch([], "Other", next_offset=20)

        store.replace_stat_record(make_record(source=ProjectionSource.MY_PROJECTIONS))

        assert store.get_recompute_cursor("DefaultPoints") == 0
        assert store.get_recompute_cursor("Other") == 0


# ── Scoring rules ────────────────────────────────────────────────────


class TestScoringRules:
    def test_insert_and_get(self, store, default_rule):
        store.insert_scoring_rule(default_rule)
        assert store.get_scoring_rule("DefaultPoints") == default_rule

    def test_insert_duplicate_name(self, store, default_rule):
        store.insert_scoring_rule(default_rule)
        with pytest.raises(NameConflictError):
            store.insert_scoring_rule(ScoringRule(name="DefaultPoints", runs=5))
        assert store.count_scoring_rules() == 1

    def test_insert_if_absent(self, store, default_rule):
        assert store.insert_scoring_rule_if_absent(default_rule) is True
        assert store.insert_scoring_rule_if_absent(default_rule) is False
        assert store.count_scoring_rules("DefaultPoints") == 1

    def test_names_are_case_sensitive(self, store):
        store.insert_scoring_rule(ScoringRule(name="Points"))
        store.insert_scoring_rule(ScoringRule(name="points"))
        assert store.count_scoring_rules() == 2
        assert store.count_scoring_rules("POINTS") == 0

    def test_list(self, store):
        store.insert_scoring_rule(ScoringRule(name="A"))
        store.insert_scoring_rule(ScoringRule(name="B", runs=2))
        assert {rule.name for rule in store.list_scoring_rules()} == {"A", "B"}


# ── Computed points ──────────────────────────────────────────────────


class TestComputedPoints:
    def test_insert_and_get(self, store):
        store.insert_computed_points(_points(amount=12.5))
        found = store.get_computed_points("p1", ProjectionSource.STEAMER, "DefaultPoints")
        assert found == _points(amount=12.5)

    def test_duplicate_key_rejected(self, store):
        store.insert_computed_points(_points())
        with pytest.raises(DuplicateKeyError):
            store.insert_computed_points(_points(amount=99.0))
        assert store.count_computed_points() == 1

    def test_insert_if_absent(self, store):
        assert store.insert_computed_points_if_absent(_points(amount=1.0)) is True
        assert store.insert_computed_points_if_absent(_points(amount=2.0)) is False
        found = store.get_computed_points("p1", ProjectionSource.STEAMER, "DefaultPoints")
        assert found.amount == 1.0

    def test_count_by_key_fields(self, store):
        store.insert_computed_points(_points("p1", ProjectionSource.STEAMER, "A"))
        store.insert_computed_points(_points("p1", ProjectionSource.ATC, "A"))
        store.insert_computed_points(_points("p2", ProjectionSource.STEAMER, "B"))

        assert store.count_computed_points() == 3
        assert store.count_computed_points(scoring_rule_name="A") == 2
        assert store.count_computed_points("p1", ProjectionSource.ATC, "A") == 1
        assert store.count_computed_points("p2", ProjectionSource.ATC, "A") == 0

    def test_existing_point_keys(self, store):
        store.insert_computed_points(_points("p1", ProjectionSource.STEAMER, "A"))
        store.insert_computed_points(_points("p2", ProjectionSource.ATC, "A"))
        store.insert_computed_points(_points("p3", ProjectionSource.ATC, "B"))

        found = store.existing_point_keys(
            "A",
            [
                ("p1", ProjectionSource.STEAMER),
                ("p1", ProjectionSource.ATC),
                ("p3", ProjectionSource.ATC),
            ],
        )
        assert found == {("p1", ProjectionSource.STEAMER)}

    def test_existing_point_keys_empty(self, store):
        assert store.existing_point_keys("A", []) == set()

    def test_commit_batch_writes_points_and_cursor(self, store):
        entries = [_points(f"p{i}") for i in range(3)]
        assert store.commit_points_batch(entries, "DefaultPoints", next_offset=3) == 3
        assert store.get_recompute_cursor("DefaultPoints") == 3
        assert store.count_computed_points() == 3

    def test_commit_batch_skips_existing(self, store):
        store.insert_computed_points(_points("p0", amount=5.0))
        entries = [_points(f"p{i}", amount=1.0) for i in range(3)]
        assert store.commit_points_batch(entries, "DefaultPoints", next_offset=3) == 2
        kept = store.get_computed_points("p0", ProjectionSource.STEAMER, "DefaultPoints")
        assert kept.amount == 5.0

    def test_commit_empty_batch_moves_cursor(self, store):
        assert store.commit_points_batch([], "A", next_offset=100) == 0
        assert store.get_recompute_cursor("A") == 100

    def test_cursor_defaults_and_clears(self, store):
        assert store.get_recompute_cursor("A") == 0
        store.commit_points_batch([], "A", next_offset=10)
        store.clear_recompute_cursor("A")
        assert store.get_recompute_cursor("A") == 0


# ── Reporting ────────────────────────────────────────────────────────


class TestPointsFrame:
    def test_sorted_best_first(self, store, make_record):
        store.add_stat_records([make_record("p1"), make_record("p2"), make_record("p3")])
        store.insert_computed_points(_points("p1", amount=5.0))
        store.insert_computed_points(_points("p2", amount=50.0))
        store.insert_computed_points(_points("p3", amount=20.0))

        df = store.points_frame("DefaultPoints")

        assert df["player_id"].tolist() == ["p2", "p3", "p1"]
        assert df.iloc[0]["player_name"] == "Player p2"
        assert set(df.columns) == {
            "player_id", "player_name", "team", "position",
            "projection_source", "amount",
        }

    def test_filter_by_source(self, store, make_record):
        store.add_stat_records([
            make_record("p1", ProjectionSource.STEAMER),
            make_record("p1", ProjectionSource.ATC),
        ])
        store.insert_computed_points(_points("p1", ProjectionSource.STEAMER))
        store.insert_computed_points(_points("p1", ProjectionSource.ATC))

        df = store.points_frame("DefaultPoints", ProjectionSource.ATC)
        assert df["projection_source"].tolist() == ["atc"]

    def test_filter_by_position(self, store, make_record):
        store.add_stat_records([
            make_record("p1", position="C, 1B"),
            make_record("p2", position="1B"),
            make_record("p3", position="OF"),
        ])
        for pid, amount in (("p1", 30.0), ("p2", 20.0), ("p3", 10.0)):
            store.insert_computed_points(_points(pid, amount=amount))

        assert store.points_frame("DefaultPoints", position="1B")["player_id"].tolist() == ["p1", "p2"]
        assert store.points_frame("DefaultPoints", position="c")["player_id"].tolist() == ["p1"]
        assert store.points_frame("DefaultPoints", position="B").empty


# ── Errors ───────────────────────────────────────────────────────────


class TestPersistenceErrors:
    def test_locked_database_is_transient(self, store, make_record):
        blocker = store.connect()
        blocker.execute("BEGIN EXCLUSIVE")
        conn = sqlite3.connect(store.db_path, timeout=0)
        try:
            with pytest.raises(PersistenceError) as exc_info:
                store.add_stat_records([make_record()], conn=conn)
            assert exc_info.value.transient is True
        finally:
            conn.close()
            blocker.rollback()
            blocker.close()

    def test_schema_error_is_not_transient(self, store):
        conn = store.connect()
        try:
            conn.execute("DROP TABLE computed_points")
            conn.commit()
            with pytest.raises(PersistenceError) as exc_info:
                store.count_computed_points()
            assert exc_info.value.transient is False
        finally:
            conn.close()

    def test_report_error_is_persistence_error(self, store):
        conn = store.connect()
        try:
            conn.execute("DROP TABLE computed_points")
            conn.commit()
        finally:
            conn.close()

        with pytest.raises(PersistenceError) as exc_info:
            store.points_frame("DefaultPoints")
        assert exc_info.value.transient is False
        assert "no such table" in str(exc_info.value)
