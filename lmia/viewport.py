"""
Viewport query engine.

filter (attributes) -> filter (bbox) -> strategy -> aggregate -> truncate.
``total`` always counts every in-viewport record, before aggregation and
truncation, so the client can tell when more data exists than it was sent.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Union

from lmia.cache import DatasetCache
from lmia.clustering import cluster_with_deadline
from lmia.exceptions import DataUnavailable
from lmia.filters import EmployerFilters, apply_filters
from lmia.models import BoundingBox, Cluster, Dataset, EmployerRecord, RenderStrategy, StrategyName, ViewportQuery
from lmia.strategy import select_strategy


logger = logging.getLogger(__name__)

TOP_PER_PROVINCE = 5

PayloadItem = Union[EmployerRecord, Cluster]


@dataclass(frozen=True)
class RegionSummary:
    province: str
    count: int
    total_positions: int
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "province": self.province,
            "count": self.count,
            "total_positions": self.total_positions,
            "lat": self.lat,
            "lng": self.lng,
        }


@dataclass(frozen=True)
class ViewportResult:
    result_type: str
    total: int
    strategy: RenderStrategy
    payload: List[PayloadItem] = field(default_factory=list)
    regions: Optional[List[RegionSummary]] = None

    @property
    def shown(self) -> int:
        return len(self.payload)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "type": self.result_type,
            "total": self.total,
            "showing": self.shown,
            "strategy": self.strategy.name.value,
        }
        items = [item.to_dict() for item in self.payload]
        if self.result_type == "clusters":
            body["clusters"] = items
        else:
            body["markers"] = items
        if self.regions is not None:
            body["regions"] = [r.to_dict() for r in self.regions]
        return body


def filter_to_bbox(records: Sequence[EmployerRecord], bbox: BoundingBox) -> List[EmployerRecord]:
    return [r for r in records if bbox.contains(r.latitude, r.longitude)]


def group_in_order(records: Sequence[EmployerRecord], key: Callable[[EmployerRecord], Hashable]) -> Dict[Hashable, List[EmployerRecord]]:
    groups: Dict[Hashable, List[EmployerRecord]] = {}
    for record in records:
        groups.setdefault(key(record), []).append(record)
    return groups


def top_per_group(
    records: Sequence[EmployerRecord],
    key: Callable[[EmployerRecord], Hashable],
    n: int,
) -> List[EmployerRecord]:
    """Top ``n`` by total_positions within each group; groups in first-seen order."""
    out: List[EmployerRecord] = []
    for members in group_in_order(records, key).values():
        out.extend(sorted(members, key=lambda r: r.total_positions, reverse=True)[:n])
    return out


def summarize_regions(records: Sequence[EmployerRecord]) -> List[RegionSummary]:
    summaries = []
    for province, members in group_in_order(records, lambda r: r.province_territory).items():
        summaries.append(
            RegionSummary(
                province=str(province),
                count=len(members),
                total_positions=sum(m.total_positions for m in members),
                lat=sum(m.latitude for m in members) / len(members),
                lng=sum(m.longitude for m in members) / len(members),
            )
        )
    return sorted(summaries, key=lambda s: s.count, reverse=True)


def result_type_for(strategy: RenderStrategy) -> str:
    return "clusters" if strategy.name is StrategyName.CITY_CLUSTERS else "markers"


def empty_result(query: ViewportQuery) -> ViewportResult:
    strategy = select_strategy(query.zoom)
    regions: Optional[List[RegionSummary]] = [] if strategy.name is StrategyName.REGIONAL_SUMMARY else None
    return ViewportResult(result_type=result_type_for(strategy), total=0, strategy=strategy, regions=regions)


def query_viewport(
    records: Sequence[EmployerRecord],
    query: ViewportQuery,
    *,
    filters: Optional[EmployerFilters] = None,
    cluster_timeout: Optional[float] = None,
    executor: Optional[Executor] = None,
) -> ViewportResult:
    candidates = apply_filters(records, filters)
    visible = filter_to_bbox(candidates, query.bbox)
    strategy = select_strategy(query.zoom)

    regions: Optional[List[RegionSummary]] = None
    payload: List[PayloadItem]
    if strategy.name is StrategyName.REGIONAL_SUMMARY:
        payload = list(top_per_group(visible, lambda r: r.province_territory, TOP_PER_PROVINCE))
        regions = summarize_regions(visible)
    elif strategy.name is StrategyName.CITY_CLUSTERS:
        payload = list(
            cluster_with_deadline(
                visible,
                strategy.cluster_radius_meters or 0,
                timeout=cluster_timeout,
                executor=executor,
            )
        )
    else:
        payload = list(visible)

    payload = payload[: strategy.max_points]
    logger.info(
        "Viewport %s %s zoom=%s: %d/%d shown (%s)",
        query.year,
        query.quarter,
        query.zoom,
        len(payload),
        len(visible),
        strategy.description,
    )
    return ViewportResult(
        result_type=result_type_for(strategy),
        total=len(visible),
        strategy=strategy,
        payload=payload,
        regions=regions,
    )


class ViewportEngine:
    """Runs viewport queries against datasets resolved through a DatasetCache."""

    def __init__(
        self,
        cache: DatasetCache,
        *,
        cluster_timeout: Optional[float] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.cache = cache
        self.cluster_timeout = cluster_timeout
        self.executor = executor

    def dataset(self, year: int, quarter: str) -> Optional[Dataset]:
        """The period's dataset, or None when it cannot be loaded."""
        try:
            return self.cache.get(year, quarter)
        except DataUnavailable as exc:
            logger.warning("%s", exc)
            return None
        except Exception:
            logger.exception("Failed to load LMIA data for %s %s", year, quarter)
            return None

    def query(self, query: ViewportQuery, filters: Optional[EmployerFilters] = None) -> ViewportResult:
        dataset = self.dataset(query.year, query.quarter)
        if dataset is None:
            return empty_result(query)
        return query_viewport(
            dataset.employers,
            query,
            filters=filters,
            cluster_timeout=self.cluster_timeout,
            executor=self.executor,
        )
