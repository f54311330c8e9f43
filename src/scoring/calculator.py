"""Fantasy-points calculation from a stat line and a scoring rule."""

from typing import Dict

from src.projections.models import StatRecord
from src.scoring.config import DISPLAY_DECIMAL_PLACES
from src.scoring.models import BATTING_CATEGORIES, ScoringCategory, ScoringRule


def points_breakdown(stat: StatRecord, rule: ScoringRule) -> Dict[ScoringCategory, float]:
    """Points contributed by each batting category."""
    return {
        category: rule.weight(category) * stat.get(batting_stat)
        for category, batting_stat in BATTING_CATEGORIES.items()
    }


def calculate_points(stat: StatRecord, rule: ScoringRule) -> float:
    """Fantasy-point total for *stat* under *rule*.

    total = TB*w_TB + R*w_R + RBI*w_RBI + SB*w_SB + CS*w_CS + BB*w_BB + SO*w_K

    Unset statistics count as zero. The result is not rounded; use
    :func:`format_points` for display.
    """
    return sum(points_breakdown(stat, rule).values(), 0.0)


def format_points(amount: float, places: int = DISPLAY_DECIMAL_PLACES) -> str:
    """Display form of a points total.

    Examples:
        7.0    -> "7"
        12.345 -> "12.3"
        -3.96  -> "-4"
    """
    rounded = round(float(amount), places)
    if rounded == int(rounded):
        return str(int(rounded))
    return str(rounded)
