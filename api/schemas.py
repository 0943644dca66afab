from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field


class EmployerFiltersModel(BaseModel):
    programs: List[str] = Field(default_factory=list)
    provinces: List[str] = Field(default_factory=list)
    noc_code: str = ""
    min_positions: int = 0
    search_query: str = ""


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class AvailableDataResponse(BaseModel):
    years: List[int]
    quarters: Dict[str, List[str]]


class CacheStatsResponse(BaseModel):
    cached_periods: List[str]
    loading_periods: List[str]
    total_employers: int
    total_approvals: int
    max_size: int
    hits: int
    misses: int
