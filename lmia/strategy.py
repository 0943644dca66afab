"""
Zoom level -> render strategy.

One canonical table:

  zoom < 6        province_summary    top employers per province, <= 50
  6 <= zoom < 8   city_clusters       80 m clusters,                <= 200
  8 <= zoom < 10  city_clusters       40 m clusters,                <= 500
  zoom >= 10      individual_markers  raw records,                  <= 1000
"""
from __future__ import annotations

from typing import List, Tuple

from lmia.models import RenderStrategy, StrategyName


REGIONAL_SUMMARY = RenderStrategy(
    name=StrategyName.REGIONAL_SUMMARY,
    max_points=50,
    description="Province-level aggregation",
)
REGIONAL_CLUSTERS = RenderStrategy(
    name=StrategyName.CITY_CLUSTERS,
    max_points=200,
    cluster_radius_meters=80,
    description="City-level clustering",
)
CITY_CLUSTERS = RenderStrategy(
    name=StrategyName.CITY_CLUSTERS,
    max_points=500,
    cluster_radius_meters=40,
    description="Neighbourhood-level clustering",
)
INDIVIDUAL_MARKERS = RenderStrategy(
    name=StrategyName.INDIVIDUAL_MARKERS,
    max_points=1000,
    description="Individual employer markers",
)

# (exclusive upper zoom bound, strategy), checked in order.
ZOOM_BANDS: List[Tuple[float, RenderStrategy]] = [
    (6, REGIONAL_SUMMARY),
    (8, REGIONAL_CLUSTERS),
    (10, CITY_CLUSTERS),
]


def select_strategy(zoom: float) -> RenderStrategy:
    for upper, strategy in ZOOM_BANDS:
        if zoom < upper:
            return strategy
    return INDIVIDUAL_MARKERS
