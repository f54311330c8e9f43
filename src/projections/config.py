from pathlib import Path

# Base project directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
RAW_DATA_DIR = DATA_DIR / "raw"

# FanGraphs batter export names (use .format(position=..., source=...))
BATTER_FILE_PATTERN = "Extended{position}Bat{source}Standard.json"

# Position labels as they appear in the export file names
BATTER_POSITIONS = ("C", "1b", "2b", "3b", "Ss", "Of")

# Export column -> StatRecord field
BATTER_COLUMNS = {
    "playerids": "player_id",
    "PlayerName": "player_name",
    "Team": "team",
    "minpos": "position",
    "G": "games",
    "PA": "plate_appearances",
    "AB": "at_bats",
    "H": "hits",
    "1B": "singles",
    "2B": "doubles",
    "3B": "triples",
    "HR": "home_runs",
    "R": "runs",
    "RBI": "rbi",
    "BB": "walks",
    "IBB": "intentional_walks",
    "SO": "strikeouts",
    "HBP": "hit_by_pitch",
    "SF": "sacrifice_flies",
    "SH": "sacrifice_hits",
    "GDP": "grounded_into_double_plays",
    "SB": "stolen_bases",
    "CS": "caught_stealing",
    "AVG": "avg",
    "OBP": "obp",
    "SLG": "slg",
    "OPS": "ops",
    "wOBA": "woba",
    "WAR": "war",
    "ADP": "adp",
}

TEXT_COLUMNS = ("player_id", "player_name", "team", "position")
