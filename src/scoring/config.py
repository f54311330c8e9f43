from pathlib import Path

# Base project directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Durable store location
STORE_DIR = PROJECT_ROOT / "data" / "store"
STORE_PATH = STORE_DIR / "draft_points.sqlite"

# Rule that always exists
DEFAULT_RULE_NAME = "DefaultPoints"

DEFAULT_WEIGHTS = {
    # Batting
    "total_bases": 1.0,
    "runs": 1.0,
    "rbi": 1.0,
    "stolen_bases": 1.0,
    "caught_stealing": -1.0,
    "walks": 1.0,
    "strikeouts": -1.0,
    # Pitching
    "wins": 5.0,
    "losses": -3.0,
    "saves": 3.0,
    "earned_runs": -1.0,
    "pitcher_strikeouts": 1.0,
    "innings_pitched": 1.0,
    "hits_allowed": -1.0,
    "walks_allowed": -1.0,
    "quality_starts": 3.0,
}

# Recomputation tuning
RECOMPUTE_BATCH_SIZE = 100
MAX_BATCH_RETRIES = 3
RETRY_BACKOFF_SECONDS = 0.5  # multiplied by the attempt number

# SQLite busy timeout before a write reports "database is locked"
STORE_TIMEOUT_SECONDS = 5.0

# Presentation
DISPLAY_DECIMAL_PLACES = 1
TOP_PLAYERS_SHOWN = 10
