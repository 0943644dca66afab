from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from lmia.charts import ranked_bar_chart, share_donut_chart
from lmia.filters import EmployerFilters, apply_filters
from lmia.models import Dataset


TOP_OCCUPATIONS = 10


def _ranked(df: pd.DataFrame, column: str, label: str) -> pd.DataFrame:
    """Sum of total_positions per ``column``, largest first."""
    if df.empty:
        return pd.DataFrame(columns=[label, "count"])
    sums = df.groupby(column, sort=False)["total_positions"].sum().reset_index(name="count")
    sums = sums.rename(columns={column: label})
    return sums.sort_values("count", ascending=False, kind="stable").reset_index(drop=True)


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return [{k: (int(v) if k == "count" else str(v)) for k, v in row.items()} for row in df.to_dict(orient="records")]


def compute_statistics(filters: EmployerFilters, dataset: Dataset) -> Dict[str, Any]:
    """Statistics page payload: totals, rankings and Vega-Lite charts.

    Rankings sum each employer's positions under its primary occupation,
    primary program and province.
    """
    employers = pd.DataFrame([e.to_dict() for e in apply_filters(dataset.employers, filters)])

    total_positions = int(employers["total_positions"].sum()) if not employers.empty else 0
    total_lmias = int(employers["total_lmias"].sum()) if not employers.empty else 0

    occupations = _ranked(employers, "primary_occupation", "occupation")
    programs = _ranked(employers, "primary_program", "program")
    provinces = _ranked(employers, "province_territory", "province")

    return {
        "year": dataset.year,
        "quarter": dataset.quarter,
        "filters": asdict(filters),
        "kpis": {
            "total_employers": len(employers),
            "total_positions": total_positions,
            "total_lmias": total_lmias,
        },
        "top_occupations": _records(occupations.head(TOP_OCCUPATIONS)),
        "top_programs": _records(programs),
        "provinces_distribution": _records(provinces),
        "charts": {
            "occupations": ranked_bar_chart(
                occupations.head(TOP_OCCUPATIONS), "occupation", "count", title="Top Occupations"
            ),
            "programs": share_donut_chart(programs, "program", "count", title="Program Streams"),
            "provinces": ranked_bar_chart(provinces, "province", "count", title="Provincial Distribution"),
        },
    }
