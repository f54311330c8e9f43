"""Load projections and compute fantasy points for every player.

Usage:
    python -m src.scoring.run_recompute [data_dir] [rule_name]

Examples:
    python -m src.scoring.run_recompute
    python -m src.scoring.run_recompute /path/to/json DefaultPoints
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from src.logging_config import setup_logging
from src.projections.ingestion import ProjectionIngester
from src.projections.models import ProjectionSource
from src.scoring.calculator import format_points, points_breakdown
from src.scoring.config import DEFAULT_RULE_NAME, TOP_PLAYERS_SHOWN
from src.scoring.models import RecomputationResult
from src.scoring.progress import ProgressReporter, ProgressState, ProgressUpdate
from src.scoring.recompute import RecomputationEngine
from src.scoring.scoring_rules import ScoringRuleBook
from src.scoring.store import ProjectionStore

logger = logging.getLogger(__name__)


def _log_progress(update: ProgressUpdate) -> None:
    if update.state is ProgressState.RUNNING:
        logger.info("  %3.0f%% complete", update.value * 100)
    elif update.state is ProgressState.FAILED:
        logger.error("  Stopped at %.0f%%: %s", update.value * 100, update.message)


def run_recompute(
    data_dir: Optional[Path] = None,
    rule_name: str = DEFAULT_RULE_NAME,
    db_path: Optional[Path] = None,
) -> RecomputationResult:
    """Ingest projections and compute points under *rule_name*.

    Args:
        data_dir: Directory with the projection JSON exports.
            Defaults to ``data/raw``.
        rule_name: Scoring rule to compute. The default rule is created
            if needed; any other rule must already exist.
        db_path: Store location. Defaults to ``data/store``.

    Returns:
        Counters for the recomputation pass.

    Raises:
        KeyError: If *rule_name* is not a known scoring rule.
    """
    store = ProjectionStore(db_path)
    rules = ScoringRuleBook(store)

    logger.info("Step 1/3: Loading projections...")
    ProjectionIngester(data_dir).load_into(store)

    logger.info("Step 2/3: Resolving scoring rule %r...", rule_name)
    default_rule = rules.default()
    rule = default_rule if rule_name == DEFAULT_RULE_NAME else rules.get(rule_name)
    if rule is None:
        raise KeyError(f"Unknown scoring rule: {rule_name!r}")

    logger.info("Step 3/3: Computing points...")
    progress = ProgressReporter()
    progress.subscribe(_log_progress)
    result = RecomputationEngine(store).recalculate(rule, progress)

    top = store.points_frame(rule.name).head(TOP_PLAYERS_SHOWN)
    logger.info("Top %d by %s:", len(top), rule.name)
    for _, row in top.iterrows():
        logger.info(
            "  %-24s %-10s %-14s %s",
            row["player_name"],
            row["position"],
            row["projection_source"],
            format_points(row["amount"]),
        )

    if not top.empty:
        leader = top.iloc[0]
        stat = store.get_stat_record(
            leader["player_id"], ProjectionSource(leader["projection_source"])
        )
        breakdown = points_breakdown(stat, rule)
        logger.info(
            "  %s: %s",
            leader["player_name"],
            ", ".join(
                f"{category.value} {format_points(value)}"
                for category, value in breakdown.items()
                if value
            ),
        )
    return result


if __name__ == "__main__":
    setup_logging()

    data_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    rule_name = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_RULE_NAME

    try:
        outcome = run_recompute(data_dir, rule_name)
        print(
            f"Computed {outcome.computed} totals "
            f"({outcome.already_cached} already cached, "
            f"{outcome.skipped_missing} skipped)"
        )
    except Exception:
        logger.exception("Recomputation failed")
        sys.exit(1)
