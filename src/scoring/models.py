"""Data models for scoring rules and computed fantasy points."""

import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, Tuple

from src.projections.models import BattingStat, ProjectionSource
from src.scoring.config import DEFAULT_RULE_NAME, DEFAULT_WEIGHTS


class ScoringCategory(Enum):
    """Statistical categories a scoring rule assigns a weight to."""

    # Batting
    TOTAL_BASES = "total_bases"
    RUNS = "runs"
    RBI = "rbi"
    STOLEN_BASES = "stolen_bases"
    CAUGHT_STEALING = "caught_stealing"
    WALKS = "walks"
    STRIKEOUTS = "strikeouts"
    # Pitching
    WINS = "wins"
    LOSSES = "losses"
    SAVES = "saves"
    EARNED_RUNS = "earned_runs"
    PITCHER_STRIKEOUTS = "pitcher_strikeouts"
    INNINGS_PITCHED = "innings_pitched"
    HITS_ALLOWED = "hits_allowed"
    WALKS_ALLOWED = "walks_allowed"
    QUALITY_STARTS = "quality_starts"


# Batting category -> the stat it multiplies
BATTING_CATEGORIES: Dict[ScoringCategory, BattingStat] = {
    ScoringCategory.TOTAL_BASES: BattingStat.TB,
    ScoringCategory.RUNS: BattingStat.R,
    ScoringCategory.RBI: BattingStat.RBI,
    ScoringCategory.STOLEN_BASES: BattingStat.SB,
    ScoringCategory.CAUGHT_STEALING: BattingStat.CS,
    ScoringCategory.WALKS: BattingStat.BB,
    ScoringCategory.STRIKEOUTS: BattingStat.SO,
}


@dataclass(frozen=True)
class ScoringRule:
    """A named set of point-per-statistic weights.

    Rules are immutable once created: cached points are keyed by rule
    name, so changing weights under an existing name would leave stale
    totals behind.
    """

    name: str
    total_bases: float = 0.0
    runs: float = 0.0
    rbi: float = 0.0
    stolen_bases: float = 0.0
    caught_stealing: float = 0.0
    walks: float = 0.0
    strikeouts: float = 0.0
    wins: float = 0.0
    losses: float = 0.0
    saves: float = 0.0
    earned_runs: float = 0.0
    pitcher_strikeouts: float = 0.0
    innings_pitched: float = 0.0
    hits_allowed: float = 0.0
    walks_allowed: float = 0.0
    quality_starts: float = 0.0

    def __post_init__(self):
        for category in ScoringCategory:
            value = getattr(self, category.value)
            if value is None:
                value = 0.0
            value = float(value)
            if not math.isfinite(value):
                raise ValueError(
                    f"Weight for {category.value} must be finite, got {value!r}"
                )
            object.__setattr__(self, category.value, value)

    def weight(self, category: ScoringCategory) -> float:
        """Points awarded per unit of *category*."""
        return getattr(self, category.value)

    def weights(self) -> Dict[ScoringCategory, float]:
        return {category: self.weight(category) for category in ScoringCategory}

    def to_dict(self) -> Dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, row: Dict) -> "ScoringRule":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in known})

    @classmethod
    def default(cls) -> "ScoringRule":
        """The built-in "DefaultPoints" rule."""
        return cls(name=DEFAULT_RULE_NAME, **DEFAULT_WEIGHTS)


@dataclass(frozen=True)
class ComputedPoints:
    """Cached fantasy-point total for a (player, source, rule) triple.

    ``player_id`` and ``projection_source`` are the key of the StatRecord
    the total was derived from.
    """

    player_id: str
    projection_source: ProjectionSource
    scoring_rule_name: str
    amount: float

    @property
    def key(self) -> Tuple[str, ProjectionSource, str]:
        return self.player_id, self.projection_source, self.scoring_rule_name

    @property
    def stat_record_key(self) -> Tuple[str, ProjectionSource]:
        return self.player_id, self.projection_source


@dataclass
class RecomputationResult:
    """Counters for one recomputation pass."""

    scoring_rule_name: str
    status: str  # "completed" or "cancelled"
    total: int = 0
    computed: int = 0
    already_cached: int = 0
    skipped_missing: int = 0
    batches: int = 0
    resumed_from: int = 0

    @property
    def is_complete(self) -> bool:
        return self.status == "completed"
