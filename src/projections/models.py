"""Projection data models - one player's statistical line per source."""

from dataclasses import dataclass, fields
from enum import Enum
from operator import attrgetter
from typing import Callable, Dict, Optional, Tuple


class ProjectionSource(Enum):
    """Named origin of a statistical forecast."""

    STEAMER = "steamer"
    ZIPS = "zips"
    THEBAT = "thebat"
    THEBATX = "thebatx"
    ATC = "atc"
    DEPTH_CHARTS = "depthCharts"
    MY_PROJECTIONS = "myProjections"

    @property
    def file_label(self) -> str:
        """Label used in export file names."""
        return _FILE_LABELS[self]

    @property
    def title(self) -> str:
        """Human-readable name, as the vendor writes it."""
        return _TITLES[self]


_FILE_LABELS = {
    ProjectionSource.STEAMER: "Steamer",
    ProjectionSource.ZIPS: "zips",
    ProjectionSource.THEBAT: "Thebat",
    ProjectionSource.THEBATX: "Thebatx",
    ProjectionSource.ATC: "Atc",
    ProjectionSource.DEPTH_CHARTS: "Fangraphsdc",
    ProjectionSource.MY_PROJECTIONS: "My Projections",
}

_TITLES = {
    ProjectionSource.STEAMER: "Steamer",
    ProjectionSource.ZIPS: "ZiPS",
    ProjectionSource.THEBAT: "THE BAT",
    ProjectionSource.THEBATX: "THE BAT X",
    ProjectionSource.ATC: "ATC",
    ProjectionSource.DEPTH_CHARTS: "Depth Charts",
    ProjectionSource.MY_PROJECTIONS: "My Projections",
}

# Vendor sources published for batters
BATTER_SOURCES = (
    ProjectionSource.STEAMER,
    ProjectionSource.THEBAT,
    ProjectionSource.THEBATX,
    ProjectionSource.ATC,
    ProjectionSource.DEPTH_CHARTS,
)


class BattingStat(Enum):
    """Numeric statistics carried by a StatRecord."""

    G = "G"
    PA = "PA"
    AB = "AB"
    H = "H"
    SINGLES = "1B"
    DOUBLES = "2B"
    TRIPLES = "3B"
    HR = "HR"
    R = "R"
    RBI = "RBI"
    BB = "BB"
    IBB = "IBB"
    SO = "SO"
    HBP = "HBP"
    SF = "SF"
    SH = "SH"
    GDP = "GDP"
    SB = "SB"
    CS = "CS"
    TB = "TB"
    AVG = "AVG"
    OBP = "OBP"
    SLG = "SLG"
    OPS = "OPS"
    WOBA = "wOBA"
    WAR = "WAR"
    ADP = "ADP"


def derive_total_bases(
    hits: float, doubles: float, triples: float, home_runs: float
) -> float:
    """Total bases from the hit components.

    singles = H - 2B - 3B - HR
    TB      = singles + 2*2B + 3*3B + 4*HR
    """
    singles = hits - doubles - triples - home_runs
    return singles + 2 * doubles + 3 * triples + 4 * home_runs


@dataclass
class StatRecord:
    """One player's statistical line for one projection source."""

    player_id: Optional[str]
    projection_source: Optional[ProjectionSource]
    player_name: str = ""
    position: str = ""
    team: str = ""
    games: float = 0.0
    plate_appearances: float = 0.0
    at_bats: float = 0.0
    hits: float = 0.0
    singles: float = 0.0
    doubles: float = 0.0
    triples: float = 0.0
    home_runs: float = 0.0
    runs: float = 0.0
    rbi: float = 0.0
    walks: float = 0.0
    intentional_walks: float = 0.0
    strikeouts: float = 0.0
    hit_by_pitch: float = 0.0
    sacrifice_flies: float = 0.0
    sacrifice_hits: float = 0.0
    grounded_into_double_plays: float = 0.0
    stolen_bases: float = 0.0
    caught_stealing: float = 0.0
    total_bases: float = 0.0
    avg: float = 0.0
    obp: float = 0.0
    slg: float = 0.0
    ops: float = 0.0
    woba: float = 0.0
    war: float = 0.0
    adp: float = 0.0

    @property
    def key(self) -> Tuple[Optional[str], Optional[ProjectionSource]]:
        return self.player_id, self.projection_source

    def get(self, stat: BattingStat) -> float:
        """Value of *stat*, with an unset value read as 0."""
        value = STAT_ACCESSORS[stat](self)
        return 0.0 if value is None else float(value)

    def with_derived_total_bases(self) -> "StatRecord":
        """Store total bases derived from the hit components."""
        self.total_bases = derive_total_bases(
            self.hits, self.doubles, self.triples, self.home_runs
        )
        return self

    def to_dict(self) -> Dict:
        """Column dict used by the store."""
        row = {f.name: getattr(self, f.name) for f in fields(self)}
        row["projection_source"] = (
            self.projection_source.value if self.projection_source else None
        )
        return row

    @classmethod
    def from_dict(cls, row: Dict) -> "StatRecord":
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in row.items() if k in known}
        source = data.get("projection_source")
        data["projection_source"] = ProjectionSource(source) if source else None
        return cls(**data)


# BattingStat -> StatRecord field name
STAT_FIELDS: Dict[BattingStat, str] = {
    BattingStat.G: "games",
    BattingStat.PA: "plate_appearances",
    BattingStat.AB: "at_bats",
    BattingStat.H: "hits",
    BattingStat.SINGLES: "singles",
    BattingStat.DOUBLES: "doubles",
    BattingStat.TRIPLES: "triples",
    BattingStat.HR: "home_runs",
    BattingStat.R: "runs",
    BattingStat.RBI: "rbi",
    BattingStat.BB: "walks",
    BattingStat.IBB: "intentional_walks",
    BattingStat.SO: "strikeouts",
    BattingStat.HBP: "hit_by_pitch",
    BattingStat.SF: "sacrifice_flies",
    BattingStat.SH: "sacrifice_hits",
    BattingStat.GDP: "grounded_into_double_plays",
    BattingStat.SB: "stolen_bases",
    BattingStat.CS: "caught_stealing",
    BattingStat.TB: "total_bases",
    BattingStat.AVG: "avg",
    BattingStat.OBP: "obp",
    BattingStat.SLG: "slg",
    BattingStat.OPS: "ops",
    BattingStat.WOBA: "woba",
    BattingStat.WAR: "war",
    BattingStat.ADP: "adp",
}

STAT_ACCESSORS: Dict[BattingStat, Callable[[StatRecord], float]] = {
    stat: attrgetter(name) for stat, name in STAT_FIELDS.items()
}
