"""
Normalization, ranking and deduplication of SPARQL rows into SearchItems.

Country rows are ranked client-side. City rows arrive already ordered by the
query's ORDER BY clause (population, then label length) and are only
deduplicated and truncated here.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from roadtrip_search.models import SearchItem


_WKT_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_WKT_POINT = re.compile(rf"Point\(\s*({_WKT_NUMBER})\s+({_WKT_NUMBER})\s*\)")


def parse_wkt_point(wkt: Optional[str]) -> Optional[Tuple[float, float]]:
    """
    Parse a WKT literal such as "Point(13.405 52.52)" into (lat, lon).

    WKT puts longitude first. Returns None when the text is missing or does
    not contain a finite point.
    """

    if not wkt:
        return None
    match = _WKT_POINT.search(str(wkt))
    if match is None:
        return None
    lon, lat = float(match.group(1)), float(match.group(2))
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return lat, lon


def _value(row: Dict[str, Any], key: str) -> str:
    value = row.get(key)
    return str(value).strip() if value is not None else ""


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass
class ScoredCountry:
    name: str
    country_code: str
    iso_hit: int
    prefix_hit: int
    sitelinks: int

    def sort_key(self) -> tuple:
        # Descending on the weights, ascending on the name.
        return (
            -self.iso_hit,
            -self.prefix_hit,
            -self.sitelinks,
            self.name.casefold(),
            self.name,
        )


def score_country(row: Dict[str, Any], query: str) -> ScoredCountry:
    iso2 = _value(row, "iso2")
    label = _value(row, "cLabel")
    return ScoredCountry(
        name=label or iso2 or "Country",
        country_code=iso2,
        iso_hit=1 if iso2 and iso2.upper() == query.strip().upper() else 0,
        # Every row already matched a label or alias prefix in the query
        # filter, so this weight is constant until that filter is relaxed.
        prefix_hit=1,
        sitelinks=_to_int(row.get("sitelinks")),
    )


def rank_countries(rows: Iterable[Dict[str, Any]], query: str, limit: int) -> List[SearchItem]:
    """
    Rank country rows and truncate to `limit`.

    Order: exact ISO2 match, prefix match, sitelink count (all descending),
    then display name ascending.
    """

    scored = sorted(
        (score_country(row, query) for row in rows),
        key=ScoredCountry.sort_key,
    )
    return [
        SearchItem(
            name=sc.name,
            display_name=sc.name,
            country_code=sc.country_code,
        )
        for sc in scored[: max(0, limit)]
    ]


def city_item(row: Dict[str, Any], query: str, country_code: Optional[str] = None) -> SearchItem:
    name = _value(row, "itLabel") or query.strip()
    iso = (_value(row, "cIso") or (country_code or "")).upper()
    point = parse_wkt_point(row.get("coord"))
    lat, lon = point if point is not None else (None, None)
    return SearchItem(
        name=name,
        display_name=name,
        country_code=iso,
        lat=lat,
        lon=lon,
    )


def dedupe_cities(
    rows: Iterable[Dict[str, Any]],
    query: str,
    country_code: Optional[str],
    limit: int,
) -> List[SearchItem]:
    """
    Normalize city rows, keeping their order, dropping repeats.

    Two rows are the same place when name, country code and parsed
    coordinates all match. Stops once `limit` items are collected.
    """

    return dedupe_items((city_item(row, query, country_code) for row in rows), limit)


def dedupe_items(items: Iterable[SearchItem], limit: int) -> List[SearchItem]:
    """
    Drop items repeating an earlier (name, country code, lat, lon) key.

    Idempotent: feeding the output back in returns it unchanged.
    """

    seen: Set[tuple] = set()
    out: List[SearchItem] = []
    for item in items:
        if len(out) >= limit:
            break
        key = (item.name, item.country_code, item.lat, item.lon)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


__all__ = [
    "ScoredCountry",
    "parse_wkt_point",
    "score_country",
    "rank_countries",
    "city_item",
    "dedupe_cities",
    "dedupe_items",
]
