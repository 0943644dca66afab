"""
Shared test fixtures.

The API fixtures run the FastAPI app against an in-memory dataset through
dependency overrides, so no spreadsheet files are needed.
"""
from __future__ import annotations

from itertools import count

import pytest
from starlette.testclient import TestClient

from api.dependencies import get_engine
from api.main import app
from lmia.cache import DatasetCache
from lmia.config import Settings, get_settings
from lmia.exceptions import DataUnavailable
from lmia.models import Approval, Dataset, EmployerRecord, make_employer_id
from lmia.viewport import ViewportEngine


TORONTO = (43.6532, -79.3832)
MISSISSAUGA = (43.5890, -79.6441)
VANCOUVER = (49.2827, -123.1207)
CALGARY = (51.0447, -114.0719)
MONTREAL = (45.5017, -73.5673)

_ids = count()


def _record(name, province, city, coords, positions=1, lmias=1, program="High-wage", occupation="Cooks"):
    return EmployerRecord(
        id=make_employer_id(name, province, city),
        employer_name=name,
        address=f"1 Main St, {city}, XX",
        city=city,
        province_territory=province,
        postal_code="",
        latitude=coords[0],
        longitude=coords[1],
        total_positions=positions,
        total_lmias=lmias,
        primary_program=program,
        primary_occupation=occupation,
    )


@pytest.fixture
def make_record():
    """Factory for ad hoc records with unique ids."""

    def _make(lat, lng, positions=1, province="Ontario", city="Toronto", name=None, **kwargs):
        n = next(_ids)
        return EmployerRecord(
            id=f"employer-{n}",
            employer_name=name or f"Employer {n}",
            address=f"{n} Main St, {city}, ON",
            city=city,
            province_territory=province,
            postal_code="",
            latitude=lat,
            longitude=lng,
            total_positions=positions,
            total_lmias=kwargs.pop("lmias", 1),
            **kwargs,
        )

    return _make


@pytest.fixture
def sample_dataset() -> Dataset:
    employers = [
        _record("Maple Bakery", "Ontario", "Toronto", TORONTO, positions=10, lmias=2, occupation="63202-Bakers"),
        _record("Lakeshore Farms", "Ontario", "Toronto", TORONTO, positions=5, program="Agricultural"),
        _record("Queen St Diner", "Ontario", "Toronto", TORONTO, positions=1),
        _record("Peel Logistics", "Ontario", "Mississauga", MISSISSAUGA, positions=4, occupation="73300-Truck drivers"),
        _record("Harbour Seafood", "British Columbia", "Vancouver", VANCOUVER, positions=8),
        _record("Granville Tech", "British Columbia", "Vancouver", VANCOUVER, positions=2, program="Global Talent"),
        _record("Bow River Ranch", "Alberta", "Calgary", CALGARY, positions=6, program="Agricultural"),
        _record("Plateau Bistro", "Quebec", "Montreal", MONTREAL, positions=3),
    ]
    approvals = []
    for idx, e in enumerate(employers):
        approvals.append(
            Approval(
                id=f"{e.id}-2025-Q1-{idx}",
                employer_id=e.id,
                year=2025,
                quarter="Q1",
                program_stream=e.primary_program,
                occupation=e.primary_occupation,
                noc_code="",
                approved_positions=e.total_positions,
                approved_lmias=1,
            )
        )
    first = employers[0]
    approvals.append(
        Approval(
            id=f"{first.id}-2025-Q1-extra",
            employer_id=first.id,
            year=2025,
            quarter="Q1",
            program_stream="Low-wage",
            occupation=first.primary_occupation,
            noc_code="63202",
            approved_positions=0,
            approved_lmias=1,
        )
    )
    return Dataset(year=2025, quarter="Q1", source="sample.xlsx", employers=employers, approvals=approvals)


@pytest.fixture
def dataset_cache(sample_dataset) -> DatasetCache:
    def loader(year, quarter):
        if (year, quarter) == (2025, "Q1"):
            return sample_dataset
        raise DataUnavailable(year, quarter)

    cache = DatasetCache(loader, maxsize=4, load_timeout=5.0)
    yield cache
    cache.shutdown()


@pytest.fixture
def engine(dataset_cache):
    return ViewportEngine(dataset_cache)


@pytest.fixture
def client(engine, tmp_path):
    data_dir = tmp_path / "LMIA-DATA"
    for year, names in {2024: ["tfwp_2024q1_pos_en.xlsx", "tfwp_2024q2_pos_en.xlsx"], 2017: ["2017q1q2_positive_en.csv"]}.items():
        (data_dir / str(year)).mkdir(parents=True)
        for name in names:
            (data_dir / str(year) / name).touch()

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_settings] = lambda: Settings(data_dir=data_dir)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
