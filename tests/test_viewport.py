"""
Viewport engine behaviour: totals, point limits and strategy-specific payloads.
"""
from __future__ import annotations

import random

from lmia.cache import DatasetCache
from lmia.filters import EmployerFilters
from lmia.models import BoundingBox, StrategyName, ViewportQuery
from lmia.viewport import ViewportEngine, empty_result, query_viewport, top_per_group


CANADA_BBOX = BoundingBox(north=84.0, south=41.0, east=-52.0, west=-141.0)
PROVINCES = ["Ontario", "Quebec", "British Columbia", "Alberta", "Manitoba", "Nova Scotia"]


def _scatter(make_record, n, seed=1):
    rng = random.Random(seed)
    return [
        make_record(
            42.0 + rng.random() * 14.0,
            -130.0 + rng.random() * 70.0,
            positions=rng.randint(0, 40),
            province=rng.choice(PROVINCES),
        )
        for _ in range(n)
    ]


def test_country_view_of_large_dataset_stays_within_point_limit(make_record):
    records = _scatter(make_record, 50_000)
    result = query_viewport(records, ViewportQuery(bbox=CANADA_BBOX, zoom=3))
    assert result.strategy.name is StrategyName.REGIONAL_SUMMARY
    assert result.total == 50_000
    assert result.shown <= 50
    assert result.result_type == "markers"


def test_regional_summary_keeps_top_five_per_province(make_record):
    ontario = [make_record(43.0 + i * 0.1, -80.0, positions=p, province="Ontario") for i, p in enumerate([1, 9, 3, 7, 5, 2, 8])]
    quebec = [make_record(46.0, -72.0 + i * 0.1, positions=p, province="Quebec") for i, p in enumerate([4, 6])]
    result = query_viewport(ontario + quebec, ViewportQuery(bbox=CANADA_BBOX, zoom=4))

    ontario_shown = [r.total_positions for r in result.payload if r.province_territory == "Ontario"]
    quebec_shown = [r.total_positions for r in result.payload if r.province_territory == "Quebec"]
    assert ontario_shown == [9, 8, 7, 5, 3]
    assert quebec_shown == [6, 4]
    assert result.total == 9


def test_regional_summary_reports_region_counts(make_record):
    records = [
        make_record(43.0, -80.0, positions=2, province="Ontario"),
        make_record(45.0, -78.0, positions=3, province="Ontario"),
        make_record(49.0, -123.0, positions=5, province="British Columbia"),
    ]
    result = query_viewport(records, ViewportQuery(bbox=CANADA_BBOX, zoom=2))
    regions = {r.province: r for r in result.regions}
    assert [r.province for r in result.regions] == ["Ontario", "British Columbia"]
    assert regions["Ontario"].count == 2
    assert regions["Ontario"].total_positions == 5
    assert regions["Ontario"].lat == 44.0
    assert regions["Ontario"].lng == -79.0


def test_top_per_group_is_stable_for_ties(make_record):
    a = make_record(43.0, -80.0, positions=5)
    b = make_record(43.1, -80.0, positions=5)
    c = make_record(43.2, -80.0, positions=5)
    assert top_per_group([a, b, c], lambda r: r.province_territory, 2) == [a, b]


def test_city_clusters_account_for_every_visible_record(make_record):
    records = [make_record(43.6532, -79.3832) for _ in range(5)] + [make_record(43.59, -79.64)]
    bbox = BoundingBox(north=44.0, south=43.4, east=-79.0, west=-80.0)
    result = query_viewport(records, ViewportQuery(bbox=bbox, zoom=8))
    assert result.result_type == "clusters"
    assert [c.count for c in result.payload] == [5, 1]
    assert sum(c.count for c in result.payload) == result.total == 6


def test_cluster_output_is_truncated_to_max_points(make_record):
    # 600 points on a coarse grid; none within 40 m of another.
    records = [make_record(43.0 + (i // 30) * 0.01, -80.0 + (i % 30) * 0.01) for i in range(600)]
    result = query_viewport(records, ViewportQuery(bbox=CANADA_BBOX, zoom=9))
    assert result.total == 600
    assert result.shown == 500
    assert result.payload[0].member_ids == [records[0].id]


def test_individual_markers_pass_through_in_order(make_record):
    records = [make_record(43.0 + i * 0.001, -80.0) for i in range(1200)]
    result = query_viewport(records, ViewportQuery(bbox=CANADA_BBOX, zoom=14))
    assert result.strategy.name is StrategyName.INDIVIDUAL_MARKERS
    assert result.total == 1200
    assert result.payload == records[:1000]


def test_total_counts_only_records_inside_bbox(make_record):
    inside = make_record(43.5, -79.5)
    on_edge = make_record(44.0, -79.0)
    outside = make_record(49.0, -123.0)
    bbox = BoundingBox(north=44.0, south=43.0, east=-79.0, west=-80.0)
    result = query_viewport([inside, on_edge, outside], ViewportQuery(bbox=bbox, zoom=12))
    assert result.total == 2
    assert result.payload == [inside, on_edge]


def test_attribute_filters_narrow_total(make_record):
    records = [
        make_record(43.5, -79.5, positions=1, name="Small Shop"),
        make_record(43.5, -79.5, positions=20, name="Big Farm"),
    ]
    result = query_viewport(
        records,
        ViewportQuery(bbox=CANADA_BBOX, zoom=12),
        filters=EmployerFilters(min_positions=5),
    )
    assert result.total == 1
    assert result.payload[0].employer_name == "Big Farm"


def test_shown_never_exceeds_total_or_max_points(make_record):
    records = _scatter(make_record, 1_200, seed=5)
    for zoom in (2, 6, 8, 11):
        result = query_viewport(records, ViewportQuery(bbox=CANADA_BBOX, zoom=zoom))
        assert result.shown <= result.strategy.max_points
        assert result.shown <= result.total


def test_empty_bbox_gives_empty_result(make_record):
    records = [make_record(43.5, -79.5)]
    bbox = BoundingBox(north=10.0, south=0.0, east=10.0, west=0.0)
    result = query_viewport(records, ViewportQuery(bbox=bbox, zoom=8))
    assert result.total == 0
    assert result.payload == []


def test_empty_result_shapes():
    regional = empty_result(ViewportQuery(bbox=CANADA_BBOX, zoom=3)).to_dict()
    assert regional == {"type": "markers", "total": 0, "showing": 0, "strategy": "province_summary", "markers": [], "regions": []}
    clusters = empty_result(ViewportQuery(bbox=CANADA_BBOX, zoom=7)).to_dict()
    assert clusters == {"type": "clusters", "total": 0, "showing": 0, "strategy": "city_clusters", "clusters": []}


def test_engine_degrades_missing_period_to_empty(engine):
    result = engine.query(ViewportQuery(bbox=CANADA_BBOX, zoom=12, year=1999, quarter="Q1"))
    assert result.total == 0
    assert result.payload == []


def test_engine_degrades_loader_crash_to_empty():
    def broken_loader(year, quarter):
        raise RuntimeError("corrupt workbook")

    cache = DatasetCache(broken_loader, maxsize=1, load_timeout=5.0)
    try:
        result = ViewportEngine(cache).query(ViewportQuery(bbox=CANADA_BBOX, zoom=12))
    finally:
        cache.shutdown()
    assert result.total == 0
    assert result.strategy.name is StrategyName.INDIVIDUAL_MARKERS


def test_engine_queries_cached_dataset(engine, sample_dataset):
    result = engine.query(ViewportQuery(bbox=CANADA_BBOX, zoom=12))
    assert result.total == len(sample_dataset.employers)
    assert (2025, "Q1") in engine.cache
