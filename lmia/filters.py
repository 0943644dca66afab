from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from lmia.exceptions import MalformedBounds
from lmia.models import BoundingBox, EmployerRecord


@dataclass(frozen=True)
class EmployerFilters:
    programs: List[str] = field(default_factory=list)
    provinces: List[str] = field(default_factory=list)
    noc_code: str = ""
    min_positions: int = 0
    search_query: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.programs or self.provinces or self.noc_code or self.min_positions or self.search_query)


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s.lower() != "all":
            out.append(s)
    return out


def normalize_filters(raw: dict) -> EmployerFilters:
    min_positions = raw.get("min_positions", 0)
    try:
        min_positions = int(min_positions or 0)
    except (TypeError, ValueError):
        min_positions = 0

    return EmployerFilters(
        programs=_as_str_list(raw.get("programs")),
        provinces=_as_str_list(raw.get("provinces")),
        noc_code=str(raw.get("noc_code") or "").strip(),
        min_positions=max(0, min_positions),
        search_query=str(raw.get("search_query") or "").strip(),
    )


def matches(record: EmployerRecord, filters: EmployerFilters) -> bool:
    if filters.programs and record.primary_program not in filters.programs:
        return False
    if filters.provinces and record.province_territory not in filters.provinces:
        return False
    if filters.noc_code and filters.noc_code not in record.primary_occupation:
        return False
    if record.total_positions < filters.min_positions:
        return False
    if filters.search_query:
        q = filters.search_query.lower()
        haystack = (record.employer_name, record.city, record.address, record.primary_occupation)
        if not any(q in h.lower() for h in haystack):
            return False
    return True


def apply_filters(records: Sequence[EmployerRecord], filters: Optional[EmployerFilters]) -> List[EmployerRecord]:
    if filters is None or filters.is_empty:
        return list(records)
    return [r for r in records if matches(r, filters)]


def normalize_bounds(north: object, south: object, east: object, west: object) -> BoundingBox:
    """Validate raw viewport parameters; raises MalformedBounds."""
    values = {}
    for name, raw in (("north", north), ("south", south), ("east", east), ("west", west)):
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raise MalformedBounds(f"missing bound '{name}'")
        try:
            value = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise MalformedBounds(f"bound '{name}' is not a number: {raw!r}") from None
        if not math.isfinite(value):
            raise MalformedBounds(f"bound '{name}' is not finite")
        values[name] = value

    for name in ("north", "south"):
        if not -90.0 <= values[name] <= 90.0:
            raise MalformedBounds(f"latitude '{name}' out of range: {values[name]}")
    if values["south"] > values["north"]:
        raise MalformedBounds("south must not exceed north")
    if values["west"] > values["east"]:
        raise MalformedBounds("west must not exceed east (antimeridian-crossing boxes are not supported)")
    return BoundingBox(**values)
