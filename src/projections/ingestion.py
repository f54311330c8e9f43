"""JSON ingestion for FanGraphs batter projection exports.

Handles the quirks of the per-position export files:
- One file per (position, projection source) pair
- The same player appearing in several position files
- Player ids that look numeric but must stay strings
- Missing or blank numeric cells
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from src.projections.config import (
    BATTER_COLUMNS,
    BATTER_FILE_PATTERN,
    BATTER_POSITIONS,
    RAW_DATA_DIR,
    TEXT_COLUMNS,
)
from src.projections.models import (
    BATTER_SOURCES,
    ProjectionSource,
    StatRecord,
    derive_total_bases,
)

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Raised when projection ingestion fails."""


def _normalize_id(value) -> Optional[str]:
    """Player id as a string (19755 and 19755.0 -> "19755"), None if blank."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _merge_positions(values: pd.Series) -> str:
    """Join the distinct non-empty positions a player is listed under."""
    merged: List[str] = []
    for value in values:
        for pos in str(value).split(","):
            pos = pos.strip()
            if pos and pos not in merged:
                merged.append(pos)
    return ", ".join(merged)


class ProjectionIngester:
    """Reads batter projection exports into StatRecords.

    Each read method returns a DataFrame whose columns are StatRecord
    field names, with numeric columns as floats and ``total_bases``
    derived from the hit components.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else RAW_DATA_DIR

    def _resolve_path(self, source: ProjectionSource, position: str) -> Path:
        """Build the full file path for a source/position, raising if missing."""
        filename = BATTER_FILE_PATTERN.format(
            position=position, source=source.file_label
        )
        filepath = self.data_dir / filename
        if not filepath.exists():
            raise FileNotFoundError(f"Expected file not found: {filepath}")
        return filepath

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------
    def read_file(self, source: ProjectionSource, position: str) -> pd.DataFrame:
        """Read one position export for one projection source."""
        filepath = self._resolve_path(source, position)
        logger.debug("Reading %s projections: %s", source.title, filepath.name)

        # dtype=False keeps ids like "19755" as strings
        df = pd.read_json(filepath, orient="records", dtype=False)
        df = df.rename(columns=BATTER_COLUMNS)

        for col in BATTER_COLUMNS.values():
            if col not in df.columns:
                df[col] = "" if col in TEXT_COLUMNS else 0.0
        df = df[list(BATTER_COLUMNS.values())].copy()

        # Drop rows without a player id
        df["player_id"] = df["player_id"].map(_normalize_id)
        df = df[df["player_id"].notna()].reset_index(drop=True)

        for col in TEXT_COLUMNS:
            df[col] = df[col].fillna("").astype(str).str.strip()
        df.loc[df["position"] == "", "position"] = position.upper()

        numeric_cols = [c for c in BATTER_COLUMNS.values() if c not in TEXT_COLUMNS]
        for col in numeric_cols:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype(float)

        df["projection_source"] = source.value
        df["total_bases"] = derive_total_bases(
            df["hits"], df["doubles"], df["triples"], df["home_runs"]
        )
        return df

    # ------------------------------------------------------------------
    # Whole source
    # ------------------------------------------------------------------
    def read_source(self, source: ProjectionSource) -> pd.DataFrame:
        """Read every position export for *source*, skipping missing files."""
        frames = []
        for position in BATTER_POSITIONS:
            try:
                frames.append(self.read_file(source, position))
            except FileNotFoundError as e:
                logger.warning("Skipping %s %s: %s", source.title, position, e)

        if not frames:
            return pd.DataFrame(columns=[*BATTER_COLUMNS.values(), "projection_source"])

        df = pd.concat(frames, ignore_index=True)
        return self._deduplicate(df)

    @staticmethod
    def _deduplicate(df: pd.DataFrame) -> pd.DataFrame:
        """Keep one row per (player_id, projection_source), merging positions."""
        if df.empty:
            return df
        positions = df.groupby(
            ["player_id", "projection_source"], sort=False
        )["position"].agg(_merge_positions)

        out = df.drop_duplicates(
            subset=["player_id", "projection_source"], keep="first"
        ).reset_index(drop=True)
        out["position"] = [
            positions[(pid, src)]
            for pid, src in zip(out["player_id"], out["projection_source"])
        ]

        dropped = len(df) - len(out)
        if dropped:
            logger.debug("Merged %d duplicate position rows", dropped)
        return out

    def read_all(
        self, sources: Iterable[ProjectionSource] = BATTER_SOURCES
    ) -> List[StatRecord]:
        """Read all sources and return one StatRecord per (player, source).

        Raises:
            IngestionError: if a file cannot be parsed or nothing was read.
        """
        frames = []
        try:
            for source in sources:
                df = self.read_source(source)
                logger.info("Loaded %d %s batter projections", len(df), source.title)
                if not df.empty:
                    frames.append(df)
        except (ValueError, OSError) as e:
            raise IngestionError(f"Failed to read projection files: {e}") from e

        if not frames:
            raise IngestionError(f"No projection files found in {self.data_dir}")

        combined = self._deduplicate(pd.concat(frames, ignore_index=True))
        return [StatRecord.from_dict(row) for row in combined.to_dict("records")]

    def load_into(self, store, sources: Iterable[ProjectionSource] = BATTER_SOURCES) -> int:
        """Ingest projections and write them to *store*.

        Returns:
            Number of new StatRecords stored.
        """
        records = self.read_all(sources)
        inserted = store.add_stat_records(records)
        logger.info(
            "Stored %d new stat records (%d already present)",
            inserted, len(records) - inserted,
        )
        return inserted
