from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


NATIONAL_CENTROID: Tuple[float, float] = (56.1304, -106.3468)


def make_employer_id(employer_name: str, province: str, city: str) -> str:
    """Stable id from (name, province, city); repeats across periods."""
    return re.sub(r"\s+", "-", f"{employer_name}-{province}-{city}").lower()


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class EmployerRecord:
    id: str
    employer_name: str
    address: str
    city: str
    province_territory: str
    postal_code: str
    latitude: float
    longitude: float
    total_positions: int = 0
    total_lmias: int = 0
    primary_program: str = "Unknown"
    primary_occupation: str = "Unknown"
    incorporate_status: str = "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Approval:
    id: str
    employer_id: str
    year: int
    quarter: str
    program_stream: str
    occupation: str
    noc_code: str
    approved_positions: int
    approved_lmias: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Dataset:
    year: int
    quarter: str
    source: str = ""
    employers: List[EmployerRecord] = field(default_factory=list)
    approvals: List[Approval] = field(default_factory=list)


@dataclass(frozen=True)
class BoundingBox:
    """Map viewport in degrees. Assumes west <= east (no antimeridian wrap)."""

    north: float
    south: float
    east: float
    west: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east


@dataclass(frozen=True)
class ViewportQuery:
    bbox: BoundingBox
    zoom: int
    year: int = 2025
    quarter: str = "Q1"


@dataclass(frozen=True)
class Cluster:
    """Per-query synthetic point standing for one or more nearby employers."""

    lat: float
    lng: float
    members: Tuple[EmployerRecord, ...]

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> List[str]:
        return [m.id for m in self.members]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "count": self.count,
            "points": [m.to_dict() for m in self.members],
        }


class StrategyName(str, Enum):
    REGIONAL_SUMMARY = "province_summary"
    CITY_CLUSTERS = "city_clusters"
    INDIVIDUAL_MARKERS = "individual_markers"


@dataclass(frozen=True)
class RenderStrategy:
    name: StrategyName
    max_points: int
    cluster_radius_meters: Optional[int] = None
    description: str = ""
