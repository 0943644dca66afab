from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from lmia.exceptions import DataUnavailable
from lmia.gazetteer import Gazetteer
from lmia.models import Approval, Dataset, EmployerRecord, make_employer_id


logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = {".xlsx", ".csv"}
FULL_PERIOD_QUARTERS = {"Q1-Q4", "Q1-Q2"}
HEAD_OFFICE_MARKER = "head office outside of canada"
MAX_CSV_COLUMNS = 64

# Header text (case-insensitive, whitespace-collapsed) -> canonical column.
COLUMN_ALIASES = {
    "province/territory": "province_territory",
    "province / territory": "province_territory",
    "province": "province_territory",
    "employer": "employer_name",
    "address": "address",
    "approved positions": "approved_positions",
    "positions approved": "approved_positions",
    "approved lmias": "approved_lmias",
    "program stream": "program_stream",
    "stream": "program_stream",
    "occupation": "occupation",
    "occupations under noc 2011": "occupation",
    "incorporate status": "incorporate_status",
}

TEXT_COLUMNS = [
    "province_territory",
    "employer_name",
    "address",
    "program_stream",
    "occupation",
    "incorporate_status",
]
COUNT_COLUMNS = ["approved_positions", "approved_lmias"]


# ---------------- Source discovery ----------------
def parse_quarter_from_name(filename: str) -> str:
    """Quarter label from an LMIA file name: 'tfwp_2024q3_pos_en.xlsx' -> 'Q3'."""
    name = filename.lower()
    if re.search(r"q1[\s_-]*q2", name):
        return "Q1-Q2"
    match = re.search(r"q([1-4])", name)
    if not match:
        return "Q1-Q4"
    return f"Q{match.group(1)}"


def get_source_files(data_dir: Path, year: int) -> List[Path]:
    year_dir = Path(data_dir) / str(year)
    if not year_dir.is_dir():
        return []
    return sorted(p for p in year_dir.iterdir() if p.is_file() and p.suffix.lower() in SOURCE_SUFFIXES)


def available_periods(data_dir: Path) -> Dict[int, List[str]]:
    root = Path(data_dir)
    if not root.is_dir():
        return {}
    periods: Dict[int, List[str]] = {}
    for entry in sorted(root.iterdir()):
        if not entry.is_dir() or not entry.name.isdigit():
            continue
        labels: List[str] = []
        for path in get_source_files(root, int(entry.name)):
            label = parse_quarter_from_name(path.name)
            if label not in labels:
                labels.append(label)
        periods[int(entry.name)] = labels
    return dict(sorted(periods.items()))


def resolve_source_file(data_dir: Path, year: int, quarter: str) -> Path:
    files = get_source_files(data_dir, year)
    if not files:
        raise DataUnavailable(year, quarter, "no files for year")
    for path in files:
        if parse_quarter_from_name(path.name) == quarter:
            return path
    if quarter in FULL_PERIOD_QUARTERS:
        return files[0]
    raise DataUnavailable(year, quarter, "no file for quarter")


# ---------------- Sheet helpers ----------------
def read_raw_sheet(path: Path) -> pd.DataFrame:
    """Read the first sheet with no header so title rows can be skipped."""
    if path.suffix.lower() == ".csv":
        # Title rows are narrower than the table; fixed names let every row fit.
        df = pd.read_csv(
            path,
            header=None,
            names=range(MAX_CSV_COLUMNS),
            dtype=object,
            skip_blank_lines=False,
            encoding="utf-8-sig",
            encoding_errors="replace",
            engine="python",
        )
        return df.dropna(axis=1, how="all")
    return pd.read_excel(path, sheet_name=0, header=None, dtype=object, engine="openpyxl")


def find_header_row(df: pd.DataFrame, keywords: Iterable[str] = ("province", "employer"), search_rows: int = 25) -> Optional[int]:
    lowered = [k.lower() for k in keywords]
    for idx in range(min(search_rows, len(df))):
        cells = [str(v).strip() for v in df.iloc[idx].tolist() if pd.notna(v) and str(v).strip()]
        if len(cells) < 3:
            continue
        first = cells[0].lower()
        if any(k in first for k in lowered):
            return idx
    return None


def canonical_column(header: object) -> str:
    text = " ".join(str(header).split()).lower()
    return COLUMN_ALIASES.get(text, text)


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def parse_counts(series: pd.Series, default: int = 1) -> pd.Series:
    cleaned = series.astype("string").str.replace(",", "", regex=False).str.strip()
    values = pd.to_numeric(cleaned, errors="coerce").fillna(default)
    return values.clip(lower=0).astype(int)


def extract_city(address: str) -> str:
    parts = [p.strip() for p in (address or "").split(",")]
    if len(parts) >= 2 and parts[-2]:
        return parts[-2]
    return "Unknown"


def extract_postal_code(address: str) -> str:
    match = re.search(r"\b[A-Z]\d[A-Z]\s?\d[A-Z]\d\b", address or "")
    return match.group(0) if match else ""


def extract_noc_code(occupation: str) -> str:
    match = re.search(r"(\d{4,5})", occupation or "")
    return match.group(1) if match else ""


# ---------------- Normalization ----------------
def normalize_rows(raw: pd.DataFrame) -> pd.DataFrame:
    """Header detection, column aliasing and row cleanup for one LMIA sheet."""
    header_row = find_header_row(raw)
    if header_row is None:
        return pd.DataFrame(columns=TEXT_COLUMNS + COUNT_COLUMNS)

    df = raw.iloc[header_row + 1 :].copy()
    df.columns = [canonical_column(h) for h in raw.iloc[header_row].tolist()]
    df = drop_duplicate_columns(df)
    df = df.replace(r"^\s*$", pd.NA, regex=True).dropna(how="all")
    df = df[df.notna().sum(axis=1) >= 3]
    for col in TEXT_COLUMNS + COUNT_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA
    df = df[TEXT_COLUMNS + COUNT_COLUMNS].copy()
    df = coerce_str_safe(df, TEXT_COLUMNS)

    df = df.dropna(subset=["employer_name", "address"])
    province = df["province_territory"].fillna("")
    df = df[~province.str.lower().str.contains(HEAD_OFFICE_MARKER, regex=False)].copy()

    df["province_territory"] = df["province_territory"].fillna("Unknown")
    df["program_stream"] = df["program_stream"].fillna("Unknown")
    df["occupation"] = df["occupation"].fillna("Unknown")
    df["incorporate_status"] = df["incorporate_status"].fillna("Unknown")
    for col in COUNT_COLUMNS:
        df[col] = parse_counts(df[col])
    return df.reset_index(drop=True)


def build_dataset(
    rows: pd.DataFrame,
    *,
    year: int,
    quarter: str,
    gazetteer: Gazetteer,
    source: str = "",
) -> Dataset:
    """Aggregate approval rows into one geocoded record per employer."""
    if rows.empty:
        return Dataset(year=year, quarter=quarter, source=source)

    df = rows.copy()
    df["city"] = df["address"].map(extract_city)
    df["postal_code"] = df["address"].map(extract_postal_code)
    df["noc_code"] = df["occupation"].map(extract_noc_code)
    df["employer_id"] = [
        make_employer_id(name, prov, city)
        for name, prov, city in zip(df["employer_name"], df["province_territory"], df["city"])
    ]

    approvals = [
        Approval(
            id=f"{row.employer_id}-{year}-{quarter}-{idx}",
            employer_id=row.employer_id,
            year=year,
            quarter=quarter,
            program_stream=str(row.program_stream),
            occupation=str(row.occupation),
            noc_code=row.noc_code,
            approved_positions=int(row.approved_positions),
            approved_lmias=int(row.approved_lmias),
        )
        for idx, row in enumerate(df.itertuples(index=False))
    ]

    grouped = (
        df.groupby("employer_id", sort=False)
        .agg(
            employer_name=("employer_name", "first"),
            address=("address", "first"),
            city=("city", "first"),
            province_territory=("province_territory", "first"),
            postal_code=("postal_code", "first"),
            incorporate_status=("incorporate_status", "first"),
            total_positions=("approved_positions", "sum"),
            total_lmias=("approved_lmias", "sum"),
            primary_program=("program_stream", "first"),
            primary_occupation=("occupation", "first"),
        )
        .reset_index()
    )

    locations = {
        (prov, city): gazetteer.locate(prov, city)
        for prov, city in grouped[["province_territory", "city"]].drop_duplicates().itertuples(index=False)
    }

    employers = []
    for row in grouped.itertuples(index=False):
        coord = locations[(row.province_territory, row.city)]
        employers.append(
            EmployerRecord(
                id=row.employer_id,
                employer_name=str(row.employer_name),
                address=str(row.address),
                city=str(row.city),
                province_territory=str(row.province_territory),
                postal_code=str(row.postal_code),
                latitude=float(coord.latitude),
                longitude=float(coord.longitude),
                total_positions=int(row.total_positions),
                total_lmias=int(row.total_lmias),
                primary_program=str(row.primary_program),
                primary_occupation=str(row.primary_occupation),
                incorporate_status=str(row.incorporate_status),
            )
        )
    return Dataset(year=year, quarter=quarter, source=source, employers=employers, approvals=approvals)


# ---------------- Loader ----------------
def load_dataset(data_dir: Path, year: int, quarter: str, gazetteer: Gazetteer) -> Dataset:
    path = resolve_source_file(data_dir, year, quarter)
    logger.info("Loading LMIA data for %s %s from %s", year, quarter, path.name)
    raw = read_raw_sheet(path)
    rows = normalize_rows(raw)
    dataset = build_dataset(rows, year=year, quarter=quarter, gazetteer=gazetteer, source=path.name)
    logger.info(
        "Loaded %d employers (%d approvals) for %s %s",
        len(dataset.employers),
        len(dataset.approvals),
        year,
        quarter,
    )
    return dataset
