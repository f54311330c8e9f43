"""Write-once cache of computed fantasy points."""

import logging
from typing import Optional

from src.projections.models import ProjectionSource, StatRecord
from src.scoring.calculator import calculate_points
from src.scoring.errors import MissingFieldError
from src.scoring.models import ComputedPoints, ScoringRule
from src.scoring.store import ProjectionStore

logger = logging.getLogger(__name__)


def require_key(stat: StatRecord) -> None:
    """Raise MissingFieldError unless *stat* has both key fields."""
    if not stat.player_id or stat.projection_source is None:
        raise MissingFieldError(
            f"Stat record for {stat.player_name or 'unknown player'!r} "
            f"is missing player_id or projection_source"
        )


class ComputedPointsCache:
    """Lookup and lazy fill of (player, source, rule) -> points.

    Each key is written at most once; inserts go through the store's
    primary key, so concurrent writers cannot create duplicates.
    """

    def __init__(self, store: ProjectionStore):
        self.store = store

    def get(
        self,
        player_id: str,
        projection_source: ProjectionSource,
        scoring_rule_name: str,
    ) -> Optional[ComputedPoints]:
        return self.store.get_computed_points(
            player_id, projection_source, scoring_rule_name
        )

    def put(self, points: ComputedPoints) -> None:
        """Store *points*.

        Raises:
            DuplicateKeyError: If the key is already cached.
            PersistenceError: If the write fails.
        """
        self.store.insert_computed_points(points)

    def get_or_compute(self, stat: StatRecord, rule: ScoringRule) -> float:
        """Cached total for *stat* under *rule*, computing it on first use.

        Raises:
            MissingFieldError: If *stat* has no player id or source.
            PersistenceError: If the cache cannot be read or written; the
                key stays absent and the call can be retried.
        """
        require_key(stat)
        cached = self.get(stat.player_id, stat.projection_source, rule.name)
        if cached is not None:
            return cached.amount

        points = ComputedPoints(
            player_id=stat.player_id,
            projection_source=stat.projection_source,
            scoring_rule_name=rule.name,
            amount=calculate_points(stat, rule),
        )
        if self.store.insert_computed_points_if_absent(points):
            logger.debug("Computed %s = %.3f", points.key, points.amount)
            return points.amount

        # Another writer got there first; its value is the cached one
        stored = self.get(*points.key)
        return stored.amount if stored is not None else points.amount

    def stat_record_for(self, points: ComputedPoints) -> Optional[StatRecord]:
        """The StatRecord *points* was derived from."""
        return self.store.get_stat_record(points.player_id, points.projection_source)
