"""
Application configuration loaded from the environment.

Every value can also come from a .env file at the project root; variables
already set in the process environment win.

LMIA_DATA_DIR          root of <year>/<file>.xlsx|csv spreadsheets
LMIA_GEONAMES_CSV      optional Canadian Geographical Names CSV for geocoding
LMIA_CACHE_SIZE        number of (year, quarter) datasets kept in memory
LMIA_LOAD_TIMEOUT      seconds a request waits for a dataset load
LMIA_CLUSTER_TIMEOUT   seconds a request waits for offloaded clustering
ALLOWED_ORIGINS        comma-separated CORS origins
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = PROJECT_ROOT / "data" / "LMIA-DATA"
DEFAULT_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"


def load_env_file(path: Optional[Path] = None, *, override: bool = False) -> bool:
    return load_dotenv(path or PROJECT_ROOT / ".env", override=override)


load_env_file()


def _env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _env_float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _env_optional_path(key: str) -> Optional[Path]:
    raw = os.getenv(key, "").strip()
    return Path(raw) if raw else None


def _env_list(key: str, default: str) -> List[str]:
    raw = os.getenv(key, "") or default
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    data_dir: Path = field(default_factory=lambda: Path(os.getenv("LMIA_DATA_DIR", str(DEFAULT_DATA_DIR))))
    geonames_csv: Optional[Path] = field(default_factory=lambda: _env_optional_path("LMIA_GEONAMES_CSV"))
    cache_size: int = field(default_factory=lambda: _env_int("LMIA_CACHE_SIZE", 8))
    load_timeout: float = field(default_factory=lambda: _env_float("LMIA_LOAD_TIMEOUT", 30.0))
    cluster_timeout: float = field(default_factory=lambda: _env_float("LMIA_CLUSTER_TIMEOUT", 10.0))
    allowed_origins: List[str] = field(default_factory=lambda: _env_list("ALLOWED_ORIGINS", DEFAULT_ORIGINS))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
