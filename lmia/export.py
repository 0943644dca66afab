from __future__ import annotations

from typing import Sequence

import pandas as pd

from lmia.models import EmployerRecord


# Record field -> CSV header, in download order.
EXPORT_COLUMNS = {
    "employer_name": "Employer Name",
    "address": "Address",
    "province_territory": "Province",
    "total_positions": "Total Positions",
    "total_lmias": "Total LMIAs",
    "primary_program": "Primary Program",
    "primary_occupation": "Primary Occupation",
}


def export_filename(year: int, quarter: str) -> str:
    return f"lmia-data-{year}-{quarter}.csv"


def employers_to_csv(employers: Sequence[EmployerRecord]) -> str:
    df = pd.DataFrame([e.to_dict() for e in employers], columns=list(EXPORT_COLUMNS))
    return df.rename(columns=EXPORT_COLUMNS).to_csv(index=False)
