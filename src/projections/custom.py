"""User-entered projections stored under the myProjections source."""

import logging
from dataclasses import replace
from typing import Dict

from src.projections.models import (
    STAT_FIELDS,
    BattingStat,
    ProjectionSource,
    StatRecord,
    derive_total_bases,
)

logger = logging.getLogger(__name__)

# Edits to any of these re-derive total bases
_HIT_COMPONENTS = {BattingStat.H, BattingStat.DOUBLES, BattingStat.TRIPLES, BattingStat.HR}


def create_custom_projection(
    base: StatRecord, edits: Dict[BattingStat, float]
) -> StatRecord:
    """Copy *base* into the myProjections source with *edits* applied.

    Total bases is re-derived from the hit components unless ``TB`` itself
    is among the edits. *base* is left untouched.
    """
    if base.player_id is None:
        raise ValueError("Cannot create a custom projection without a player id")

    changes = {STAT_FIELDS[stat]: float(value) for stat, value in edits.items()}
    custom = replace(
        base, projection_source=ProjectionSource.MY_PROJECTIONS, **changes
    )

    if BattingStat.TB not in edits and _HIT_COMPONENTS & set(edits):
        custom.total_bases = derive_total_bases(
            custom.hits, custom.doubles, custom.triples, custom.home_runs
        )
    return custom


def save_custom_projection(
    store, base: StatRecord, edits: Dict[BattingStat, float]
) -> StatRecord:
    """Create and store a custom projection for *base*'s player.

    An earlier custom projection for the same player is replaced, and any
    points computed from it are deleted so they are recomputed on demand.
    """
    custom = create_custom_projection(base, edits)
    removed = store.replace_stat_record(custom)
    logger.info(
        "Saved custom projection for %s (%s), cleared %d cached totals",
        custom.player_name or custom.player_id,
        ", ".join(stat.value for stat in edits) or "no edits",
        removed,
    )
    return custom
