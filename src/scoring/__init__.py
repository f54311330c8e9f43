from src.scoring.calculator import calculate_points, format_points, points_breakdown
from src.scoring.errors import (
    DuplicateKeyError,
    MissingFieldError,
    NameConflictError,
    PersistenceError,
)
from src.scoring.models import (
    ComputedPoints,
    RecomputationResult,
    ScoringCategory,
    ScoringRule,
)
from src.scoring.points_cache import ComputedPointsCache
from src.scoring.progress import ProgressReporter, ProgressState, ProgressUpdate
from src.scoring.recompute import RecomputationEngine
from src.scoring.scoring_rules import ScoringRuleBook
from src.scoring.store import ProjectionStore

__all__ = [
    "ComputedPoints",
    "ComputedPointsCache",
    "DuplicateKeyError",
    "MissingFieldError",
    "NameConflictError",
    "PersistenceError",
    "ProgressReporter",
    "ProgressState",
    "ProgressUpdate",
    "ProjectionStore",
    "RecomputationEngine",
    "RecomputationResult",
    "ScoringCategory",
    "ScoringRule",
    "ScoringRuleBook",
    "calculate_points",
    "format_points",
    "points_breakdown",
]
