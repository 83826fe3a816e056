from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from roadtrip_search.sparql.client import SourceResult


SearchKind = Literal["country", "city"]


@dataclass
class SearchRequest:
    """One autocomplete request after parameter extraction and clamping."""

    kind: SearchKind
    query: str
    language: str = "fr"
    country_code: Optional[str] = None
    limit: int = 12


@dataclass
class SearchItem:
    """
    A single autocomplete suggestion.

    `admin1` is a compatibility placeholder for the front-end and is never
    populated. `lat`/`lon` stay None unless a coordinate was parsed.
    """

    name: str
    display_name: str
    country_code: str = ""
    admin1: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "countryCode": self.country_code,
            "admin1": self.admin1,
            "lat": self.lat,
            "lon": self.lon,
        }


@dataclass
class SearchResult:
    """
    Ranked items plus the outcome of the remote call that produced them.

    - items: ordered suggestions, already truncated to the request limit.
    - source: the SourceResult from the SPARQL endpoint, or None when no
      remote call was made (e.g. empty query).
    """

    items: List[SearchItem] = field(default_factory=list)
    source: Optional[SourceResult] = None

    @property
    def remote_failed(self) -> bool:
        return self.source is not None and not self.source.ok

    def to_dict(self) -> Dict[str, Any]:
        return {"items": [item.to_dict() for item in self.items]}


__all__ = [
    "SearchKind",
    "SearchRequest",
    "SearchItem",
    "SearchResult",
]
