"""Shared fixtures for the projections and scoring test suites."""

import json

import pytest

from src.projections.models import ProjectionSource, StatRecord
from src.scoring.models import ScoringRule
from src.scoring.store import ProjectionStore


# ------------------------------------------------------------------
# Factories – cheap to construct, no I/O
# ------------------------------------------------------------------

@pytest.fixture
def make_record():
    """Factory for StatRecords with small, readable stat lines."""

    def _make(player_id="p1", source=ProjectionSource.STEAMER, **stats):
        defaults = {
            "player_name": f"Player {player_id}",
            "position": "OF",
            "team": "TST",
            "total_bases": 4,
            "runs": 1,
            "rbi": 2,
            "stolen_bases": 0,
            "caught_stealing": 0,
            "walks": 1,
            "strikeouts": 1,
        }
        defaults.update(stats)
        return StatRecord(player_id=player_id, projection_source=source, **defaults)

    return _make


@pytest.fixture
def default_rule():
    return ScoringRule.default()


# ------------------------------------------------------------------
# Storage fixtures – one SQLite file per test
# ------------------------------------------------------------------

@pytest.fixture
def store(tmp_path):
    """Empty store in a temporary directory."""
    return ProjectionStore(tmp_path / "store" / "points.sqlite")


@pytest.fixture
def populated_store(store, make_record):
    """Store holding 25 players across two projection sources."""
    records = []
    for i in range(25):
        for source in (ProjectionSource.STEAMER, ProjectionSource.ATC):
            records.append(
                make_record(player_id=f"p{i:02d}", source=source, runs=i, rbi=i % 7)
            )
    store.add_stat_records(records)
    return store


@pytest.fixture
def write_export(tmp_path):
    """Write a FanGraphs-style export file and return its path."""
    data_dir = tmp_path / "raw"
    data_dir.mkdir()

    def _write(position, source, rows):
        path = data_dir / f"Extended{position}Bat{source.file_label}Standard.json"
        path.write_text(json.dumps(rows), encoding="utf-8")
        return path

    _write.data_dir = data_dir
    return _write
