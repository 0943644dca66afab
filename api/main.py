"""
LMIA Map API.

Run with: uvicorn api.main:app --reload --port 3001
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.dependencies import filter_params, get_engine
from api.middleware import LoggingMiddleware
from api.schemas import AvailableDataResponse, CacheStatsResponse, EmployerFiltersModel, HealthResponse
from lmia.config import Settings, get_settings
from lmia.data import available_periods
from lmia.exceptions import MalformedBounds
from lmia.export import employers_to_csv, export_filename
from lmia.filters import EmployerFilters, apply_filters, normalize_bounds, normalize_filters
from lmia.metrics_statistics import compute_statistics
from lmia.models import Dataset, ViewportQuery
from lmia.viewport import ViewportEngine


app = FastAPI(title="LMIA Map API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "DELETE"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)


def _filters_from_model(model: EmployerFiltersModel) -> EmployerFilters:
    return normalize_filters(model.model_dump())


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        ),
    )


def _error(exc: Exception, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.exception_handler(MalformedBounds)
async def malformed_bounds_handler(request: Request, exc: MalformedBounds) -> JSONResponse:
    logger.warning("Rejected viewport %s: %s", request.url.query, exc)
    return _error(exc, 400)


@app.get("/api/employers")
def employers(
    north: float = Query(...),
    south: float = Query(...),
    east: float = Query(...),
    west: float = Query(...),
    zoom: int = Query(..., ge=0, le=22),
    year: int = Query(default=2025),
    quarter: str = Query(default="Q1"),
    filters: EmployerFiltersModel = Depends(filter_params),
    engine: ViewportEngine = Depends(get_engine),
):
    bbox = normalize_bounds(north, south, east, west)
    try:
        query = ViewportQuery(bbox=bbox, zoom=zoom, year=year, quarter=quarter)
        result = engine.query(query, _filters_from_model(filters))
        return _json(result.to_dict())
    except Exception as exc:
        logger.exception("employers failed")
        return _error(exc, 500)


@app.get("/api/employers/{employer_id}")
def employer_detail(
    employer_id: str,
    year: int = Query(default=2025),
    quarter: str = Query(default="Q1"),
    engine: ViewportEngine = Depends(get_engine),
):
    dataset = engine.dataset(year, quarter)
    employer = None
    if dataset is not None:
        employer = next((e for e in dataset.employers if e.id == employer_id), None)
    if employer is None:
        return JSONResponse(
            status_code=404,
            content={"error": f"Employer {employer_id!r} not found for {year} {quarter}", "type": "NotFound"},
        )
    approvals = [a.to_dict() for a in dataset.approvals if a.employer_id == employer_id]
    return _json({"employer": employer.to_dict(), "approvals": approvals, "year": year, "quarter": quarter})


@app.get("/api/statistics")
def statistics(
    year: int = Query(default=2025),
    quarter: str = Query(default="Q1"),
    filters: EmployerFiltersModel = Depends(filter_params),
    engine: ViewportEngine = Depends(get_engine),
):
    try:
        dataset = engine.dataset(year, quarter) or Dataset(year=year, quarter=quarter)
        return _json(compute_statistics(_filters_from_model(filters), dataset))
    except Exception as exc:
        logger.exception("statistics failed")
        return _error(exc, 500)


@app.get("/api/export")
def export(
    year: int = Query(default=2025),
    quarter: str = Query(default="Q1"),
    filters: EmployerFiltersModel = Depends(filter_params),
    engine: ViewportEngine = Depends(get_engine),
):
    try:
        dataset = engine.dataset(year, quarter) or Dataset(year=year, quarter=quarter)
        selected = apply_filters(dataset.employers, _filters_from_model(filters))
        return Response(
            content=employers_to_csv(selected),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{export_filename(year, quarter)}"'},
        )
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc, 500)


@app.get("/api/available-data", response_model=AvailableDataResponse)
def available_data(settings: Settings = Depends(get_settings)):
    periods = available_periods(settings.data_dir)
    return {"years": list(periods), "quarters": {str(year): labels for year, labels in periods.items()}}


@app.get("/api/cache", response_model=CacheStatsResponse)
def cache_stats(engine: ViewportEngine = Depends(get_engine)):
    return engine.cache.stats()


@app.delete("/api/cache", response_model=CacheStatsResponse)
def clear_cache(engine: ViewportEngine = Depends(get_engine)):
    engine.cache.clear()
    return engine.cache.stats()


@app.get("/api/health", response_model=HealthResponse)
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
