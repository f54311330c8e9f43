from src.projections.custom import create_custom_projection, save_custom_projection
from src.projections.ingestion import IngestionError, ProjectionIngester
from src.projections.models import (
    BATTER_SOURCES,
    BattingStat,
    ProjectionSource,
    StatRecord,
    derive_total_bases,
)

__all__ = [
    "BATTER_SOURCES",
    "BattingStat",
    "IngestionError",
    "ProjectionIngester",
    "ProjectionSource",
    "StatRecord",
    "create_custom_projection",
    "derive_total_bases",
    "save_custom_projection",
]
