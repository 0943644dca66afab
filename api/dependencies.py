"""
Shared FastAPI dependencies.

Each provider is memoised so the process holds one gazetteer, one dataset
cache and one engine. Tests swap them via ``app.dependency_overrides``.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache, partial
from typing import List

from fastapi import Query

from api.schemas import EmployerFiltersModel
from lmia.cache import DatasetCache
from lmia.config import get_settings
from lmia.data import load_dataset
from lmia.gazetteer import Gazetteer, build_gazetteer
from lmia.viewport import ViewportEngine


@lru_cache(maxsize=1)
def get_gazetteer() -> Gazetteer:
    return build_gazetteer(get_settings().geonames_csv)


@lru_cache(maxsize=1)
def get_dataset_cache() -> DatasetCache:
    settings = get_settings()
    loader = partial(load_dataset, settings.data_dir, gazetteer=get_gazetteer())
    return DatasetCache(loader, maxsize=settings.cache_size, load_timeout=settings.load_timeout)


@lru_cache(maxsize=1)
def get_engine() -> ViewportEngine:
    settings = get_settings()
    return ViewportEngine(
        get_dataset_cache(),
        cluster_timeout=settings.cluster_timeout,
        executor=ThreadPoolExecutor(max_workers=2, thread_name_prefix="lmia-cluster"),
    )


def filter_params(
    program: List[str] = Query(default=[]),
    province: List[str] = Query(default=[]),
    noc: str = Query(default=""),
    min_positions: int = Query(default=0, ge=0),
    q: str = Query(default=""),
) -> EmployerFiltersModel:
    return EmployerFiltersModel(
        programs=program,
        provinces=province,
        noc_code=noc,
        min_positions=min_positions,
        search_query=q,
    )

