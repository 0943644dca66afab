"""
Gazetteer: resolve a (province, city) pair to a coordinate.

Lookups never fail. The chain is city -> province default -> national
centroid, so every employer record stays renderable on the map.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

import pandas as pd

from lmia.models import NATIONAL_CENTROID, Coordinate


logger = logging.getLogger(__name__)

PROVINCE_DEFAULTS: Dict[str, Tuple[float, float]] = {
    "Ontario": (44.0, -79.0),
    "British Columbia": (49.0, -123.0),
    "Alberta": (52.0, -114.0),
    "Quebec": (46.0, -72.0),
    "Manitoba": (50.0, -97.0),
    "Saskatchewan": (51.0, -106.0),
    "Nova Scotia": (45.0, -63.0),
    "New Brunswick": (46.0, -66.0),
    "Newfoundland and Labrador": (48.0, -53.0),
    "Prince Edward Island": (46.0, -63.0),
    "Northwest Territories": (62.0, -114.0),
    "Nunavut": (64.0, -68.0),
    "Yukon": (61.0, -135.0),
}

CITY_COORDINATES: Dict[str, Dict[str, Tuple[float, float]]] = {
    "Ontario": {
        "Toronto": (43.6532, -79.3832),
        "Ottawa": (45.4215, -75.6972),
        "Hamilton": (43.2557, -79.8711),
        "London": (42.9849, -81.2453),
        "Kitchener": (43.4501, -80.4829),
        "Windsor": (42.3149, -83.0364),
        "Oshawa": (43.8971, -78.8658),
        "Barrie": (44.3894, -79.6903),
        "Kingston": (44.2312, -76.4860),
        "Guelph": (43.5448, -80.2482),
        "Brampton": (43.6834, -79.7663),
        "Mississauga": (43.5890, -79.6441),
        "Markham": (43.8668, -79.2663),
        "Vaughan": (43.8361, -79.4983),
        "Richmond Hill": (43.8828, -79.4403),
        "Oakville": (43.4675, -79.6877),
        "Burlington": (43.3255, -79.7990),
        "Scarborough": (43.7731, -79.2578),
        "Etobicoke": (43.6532, -79.5672),
        "North York": (43.7615, -79.4111),
        "Woodbridge": (43.7834, -79.5995),
        "Waterloo": (43.4643, -80.5204),
        "Cambridge": (43.3616, -80.3144),
        "St. Catharines": (43.1594, -79.2469),
        "Niagara Falls": (43.0896, -79.0849),
        "Thunder Bay": (48.3809, -89.2477),
        "Sudbury": (46.5220, -81.0176),
        "Peterborough": (44.3091, -78.3197),
        "Sault Ste. Marie": (46.5219, -84.3461),
    },
    "British Columbia": {
        "Vancouver": (49.2827, -123.1207),
        "Victoria": (48.4284, -123.3656),
        "Surrey": (49.1913, -122.8490),
        "Burnaby": (49.2488, -122.9805),
        "Richmond": (49.1666, -123.1336),
        "Abbotsford": (49.0504, -122.3045),
        "Coquitlam": (49.2838, -122.7932),
        "Saanich": (48.4840, -123.3810),
        "Delta": (49.0847, -122.9000),
        "Kelowna": (49.8880, -119.4960),
        "Langley": (49.1041, -122.6600),
        "North Vancouver": (49.3163, -123.0693),
        "Nanaimo": (49.1659, -123.9401),
        "Kamloops": (50.6745, -120.3273),
        "Prince George": (53.9171, -122.7497),
        "Chilliwack": (49.1579, -121.9514),
        "Vernon": (50.2671, -119.2720),
        "Courtenay": (49.6886, -124.9936),
        "Penticton": (49.4906, -119.5858),
        "Port Coquitlam": (49.2621, -122.7811),
        "New Westminster": (49.2057, -122.9110),
    },
    "Alberta": {
        "Calgary": (51.0447, -114.0719),
        "Edmonton": (53.5461, -113.4938),
        "Red Deer": (52.2681, -113.8112),
        "Lethbridge": (49.6939, -112.8418),
        "St. Albert": (53.6333, -113.6167),
        "Medicine Hat": (50.0394, -110.6764),
        "Grande Prairie": (55.1708, -118.7947),
        "Airdrie": (51.2833, -114.0167),
        "Spruce Grove": (53.5333, -113.9167),
        "Leduc": (53.2667, -113.5500),
    },
    "Quebec": {
        "Montreal": (45.5017, -73.5673),
        "Quebec City": (46.8139, -71.2080),
        "Québec": (46.8139, -71.2080),
        "Laval": (45.6066, -73.7124),
        "Gatineau": (45.4775, -75.7013),
        "Longueuil": (45.5312, -73.5188),
        "Sherbrooke": (45.4042, -71.8929),
        "Saguenay": (48.4281, -71.0689),
        "Levis": (46.8033, -71.1779),
        "Trois-Rivières": (46.3432, -72.5432),
        "Terrebonne": (45.7000, -73.6333),
        "Boucherville": (45.5906, -73.4360),
        "Drummondville": (45.8833, -72.4833),
        "Brossard": (45.4584, -73.4650),
        "Saint-Jean-sur-Richelieu": (45.3167, -73.2667),
        "Repentigny": (45.7333, -73.4500),
    },
    "Manitoba": {
        "Winnipeg": (49.8951, -97.1384),
        "Brandon": (49.8483, -99.9500),
        "Steinbach": (49.5258, -96.6847),
        "Thompson": (55.7431, -97.8556),
        "Portage la Prairie": (49.9728, -98.2919),
        "Winkler": (49.1819, -97.9397),
        "Selkirk": (50.1436, -96.8842),
        "Morden": (49.1919, -98.1014),
        "Flin Flon": (54.7681, -101.8647),
        "The Pas": (53.8250, -101.2539),
    },
    "Saskatchewan": {
        "Saskatoon": (52.1579, -106.6702),
        "Regina": (50.4452, -104.6189),
        "Prince Albert": (53.2033, -105.7531),
        "Moose Jaw": (50.3933, -105.5519),
        "Swift Current": (50.2881, -107.7939),
        "Yorkton": (51.2139, -102.4619),
        "North Battleford": (52.7575, -108.2861),
        "Estevan": (49.1419, -102.9842),
        "Weyburn": (49.6667, -103.8500),
        "Lloydminster": (53.2833, -110.0000),
    },
    "Nova Scotia": {
        "Halifax": (44.6488, -63.5752),
        "Sydney": (46.1368, -60.1942),
        "Dartmouth": (44.6709, -63.5773),
        "Truro": (45.3667, -63.2833),
        "New Glasgow": (45.6000, -62.6500),
        "Glace Bay": (46.1969, -59.9570),
        "Kentville": (45.0833, -64.4833),
        "Amherst": (45.8167, -64.2167),
        "Bridgewater": (44.3833, -64.5167),
        "Yarmouth": (43.8333, -66.1167),
    },
    "New Brunswick": {
        "Saint John": (45.2733, -66.0633),
        "Moncton": (46.0878, -64.7782),
        "Fredericton": (45.9636, -66.6431),
        "Dieppe": (46.1000, -64.7167),
        "Riverview": (46.0667, -64.8000),
        "Quispamsis": (45.4333, -65.9500),
        "Miramichi": (47.0333, -65.5000),
        "Edmundston": (47.3667, -68.3333),
        "Bathurst": (47.6167, -65.6500),
        "Campbellton": (48.0000, -66.6667),
    },
    "Newfoundland and Labrador": {
        "St. John's": (47.5615, -52.7126),
        "Mount Pearl": (47.5167, -52.8000),
        "Corner Brook": (48.9500, -57.9500),
        "Conception Bay South": (47.5000, -52.9833),
        "Grand Falls-Windsor": (48.9333, -55.6500),
        "Gander": (48.9500, -54.6000),
        "Happy Valley-Goose Bay": (53.3167, -60.3167),
        "Labrador City": (52.9500, -66.9167),
        "Stephenville": (48.5500, -58.5667),
        "Torbay": (47.6500, -52.7333),
    },
    "Prince Edward Island": {
        "Charlottetown": (46.2382, -63.1311),
        "Summerside": (46.4000, -63.7833),
        "Stratford": (46.2167, -63.0833),
        "Cornwall": (46.2333, -63.2167),
        "Montague": (46.1667, -62.6500),
        "Kensington": (46.4333, -63.6333),
        "Souris": (46.3500, -62.2500),
        "Alberton": (46.8167, -64.0667),
        "Georgetown": (46.1833, -62.5333),
        "Tignish": (46.9500, -64.0333),
    },
    "Northwest Territories": {
        "Yellowknife": (62.4540, -114.3718),
        "Hay River": (60.8167, -115.8000),
        "Inuvik": (68.3607, -133.7231),
        "Fort Smith": (60.0000, -111.8833),
        "Behchoko": (62.8000, -116.0000),
        "Fort Simpson": (61.8500, -121.3500),
        "Tuktoyaktuk": (69.4500, -133.0333),
        "Aklavik": (68.2167, -135.0167),
        "Norman Wells": (65.2833, -126.8333),
        "Fort Providence": (61.3500, -117.6500),
    },
    "Nunavut": {
        "Iqaluit": (63.7467, -68.5170),
        "Rankin Inlet": (62.8167, -92.0833),
        "Arviat": (61.1000, -94.0500),
        "Baker Lake": (64.3167, -96.0167),
        "Cambridge Bay": (69.1167, -105.0500),
        "Igloolik": (69.3833, -81.8000),
        "Pangnirtung": (66.1500, -65.7167),
        "Pond Inlet": (72.7000, -77.9667),
        "Kugluktuk": (67.8167, -115.1000),
        "Cape Dorset": (64.2333, -76.5333),
    },
    "Yukon": {
        "Whitehorse": (60.7212, -135.0568),
        "Dawson City": (64.0667, -139.4167),
        "Watson Lake": (60.0667, -128.7167),
        "Haines Junction": (60.7500, -137.5000),
        "Carmacks": (62.0833, -136.2833),
        "Mayo": (63.6000, -135.9000),
        "Faro": (62.2167, -133.3500),
        "Teslin": (60.1667, -132.7167),
        "Pelly Crossing": (62.8167, -136.5667),
        "Ross River": (61.9833, -132.4333),
    },
}

# Higher wins when several GeoNames entries share a name within a province.
POPULATED_PLACE_PRIORITY: Dict[str, int] = {
    "City": 100,
    "Town": 90,
    "Municipality": 85,
    "District Municipality": 80,
    "Village Municipality": 75,
    "Township Municipality": 70,
    "Village": 65,
    "Urban Community": 60,
    "Community": 55,
    "Hamlet": 50,
    "Organized Hamlet": 45,
    "Compact Rural Community": 40,
    "Dispersed Rural Community": 35,
    "Locality": 30,
    "Named Locality": 25,
    "Settlement": 20,
    "Railway Point": 15,
    "Post Office": 10,
    "Residential Area": 5,
    "Neighbourhood": 1,
}

# Column positions in the Canadian Geographical Names CSV export.
GEONAMES_COLUMNS = {1: "name", 5: "generic_term", 9: "latitude", 10: "longitude", 12: "province", 13: "relevance"}


def _key(value: Optional[str]) -> str:
    text = (value or "").replace("'", "").replace("\u2019", "")
    return " ".join(text.split()).casefold()


class Gazetteer(Protocol):
    def locate(self, province: str, city: str) -> Coordinate:
        ...


class StaticGazetteer:
    """Built-in city table with province and national fallbacks."""

    def __init__(
        self,
        cities: Optional[Dict[str, Dict[str, Tuple[float, float]]]] = None,
        province_defaults: Optional[Dict[str, Tuple[float, float]]] = None,
    ) -> None:
        cities = CITY_COORDINATES if cities is None else cities
        province_defaults = PROVINCE_DEFAULTS if province_defaults is None else province_defaults
        self._cities = {
            _key(prov): {_key(city): coords for city, coords in table.items()} for prov, table in cities.items()
        }
        self._provinces = {_key(prov): coords for prov, coords in province_defaults.items()}

    def lookup_city(self, province: str, city: str) -> Optional[Coordinate]:
        coords = self._cities.get(_key(province), {}).get(_key(city))
        return Coordinate(*coords) if coords else None

    def province_default(self, province: str) -> Coordinate:
        coords = self._provinces.get(_key(province), NATIONAL_CENTROID)
        return Coordinate(*coords)

    def locate(self, province: str, city: str) -> Coordinate:
        return self.lookup_city(province, city) or self.province_default(province)


class GeoNamesGazetteer:
    """Lookup backed by the Canadian Geographical Names database CSV.

    Only populated-place entries are considered. Among same-name matches the
    place type priority wins, with the relevance column as a tiebreaker.
    Anything unresolved goes to ``fallback``.
    """

    def __init__(self, csv_path: Path, fallback: Optional[StaticGazetteer] = None) -> None:
        self.csv_path = Path(csv_path)
        self.fallback = fallback or StaticGazetteer()
        self._index: Optional[Dict[Tuple[str, str], Coordinate]] = None
        self._lock = threading.Lock()

    def _build_index(self) -> Dict[Tuple[str, str], Coordinate]:
        try:
            df = pd.read_csv(
                self.csv_path,
                usecols=list(GEONAMES_COLUMNS),
                dtype=str,
                encoding_errors="replace",
            )
        except (OSError, ValueError, pd.errors.ParserError):
            logger.exception("Failed to read GeoNames file %s; using static table only", self.csv_path)
            return {}
        df.columns = [GEONAMES_COLUMNS[i] for i in sorted(GEONAMES_COLUMNS)]
        df = df[df["generic_term"].isin(list(POPULATED_PLACE_PRIORITY))].copy()
        df["latitude"] = pd.to_numeric(df["latitude"], errors="coerce")
        df["longitude"] = pd.to_numeric(df["longitude"], errors="coerce")
        df = df.dropna(subset=["name", "province", "latitude", "longitude"])
        relevance = pd.to_numeric(df["relevance"], errors="coerce").fillna(0)
        df["score"] = df["generic_term"].map(POPULATED_PLACE_PRIORITY) + relevance / 1_000_000
        df["key_province"] = df["province"].map(_key)
        df["key_name"] = df["name"].map(_key)
        best = df.sort_values("score", ascending=False, kind="stable").drop_duplicates(["key_province", "key_name"])
        index = {
            (row.key_province, row.key_name): Coordinate(float(row.latitude), float(row.longitude))
            for row in best.itertuples(index=False)
        }
        logger.info("Indexed %d populated places from %s", len(index), self.csv_path.name)
        return index

    def _get_index(self) -> Dict[Tuple[str, str], Coordinate]:
        with self._lock:
            if self._index is None:
                self._index = self._build_index()
            return self._index

    def locate(self, province: str, city: str) -> Coordinate:
        hit = self._get_index().get((_key(province), _key(city)))
        if hit is not None:
            return hit
        return self.fallback.locate(province, city)


def build_gazetteer(geonames_csv: Optional[Path] = None) -> Gazetteer:
    static = StaticGazetteer()
    if geonames_csv is not None and Path(geonames_csv).exists():
        return GeoNamesGazetteer(geonames_csv, fallback=static)
    if geonames_csv is not None:
        logger.warning("GeoNames file %s not found; using static city table", geonames_csv)
    return static
