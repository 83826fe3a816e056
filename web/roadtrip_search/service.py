from __future__ import annotations

import logging
import math
from typing import Any, Optional

from roadtrip_search.config import AppConfig, load_config
from roadtrip_search.models import SearchRequest, SearchResult
from roadtrip_search.queries import build_city_query, build_country_query
from roadtrip_search.ranking import dedupe_cities, rank_countries
from roadtrip_search.sparql.client import SourceResult, execute_sparql


logger = logging.getLogger(__name__)


def clamp_limit(raw: Any, default: int = 12, maximum: int = 30) -> int:
    """
    Coerce a user-supplied limit into an integer in [1, maximum].

    Missing, non-numeric or non-finite values fall back to `default`;
    fractional values are truncated.
    """

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        value = default
    else:
        try:
            number = float(raw)
        except (TypeError, ValueError):
            number = float(default)
        value = int(number) if math.isfinite(number) else default
    return max(1, min(maximum, value))


def _run(query: str, config: AppConfig) -> SourceResult:
    sparql = config.sparql
    logger.debug("SPARQL for %s:\n%s", sparql.endpoint_url, query)
    return execute_sparql(
        sparql.endpoint_url,
        query,
        timeout_s=sparql.timeout_s,
        method_preference=sparql.method_preference,
        user_agent=sparql.user_agent,
    )


def country_search(
    q: Optional[str],
    language: str = "fr",
    limit: int = 12,
    config: Optional[AppConfig] = None,
) -> SearchResult:
    """Search sovereign states by ISO2 code or label/alias prefix."""

    cfg = config or load_config()
    q_trim = (q or "").strip()
    if not q_trim:
        return SearchResult()

    sparql = build_country_query(q_trim, language, cfg.search.languages)
    result = _run(sparql, cfg)
    if not result.ok:
        logger.warning("COUNTRYSEARCH wdqs %s: %s", result.status, result.error)
        return SearchResult(source=result)

    items = rank_countries(result.rows, q_trim, limit)
    logger.info(
        'COUNTRYSEARCH q="%s" lang="%s" -> %d items in %.0fms',
        q_trim,
        language,
        len(items),
        result.elapsed_ms,
    )
    return SearchResult(items=items, source=result)


def city_search(
    q: Optional[str],
    country_code: Optional[str] = None,
    language: str = "fr",
    limit: int = 12,
    config: Optional[AppConfig] = None,
) -> SearchResult:
    """
    Search populated places by label prefix, optionally within one country.

    Ordering comes from the query (population, then shorter labels); rows
    are only deduplicated here.
    """

    cfg = config or load_config()
    q_trim = (q or "").strip()
    if not q_trim:
        return SearchResult()

    cc = (country_code or "").strip().upper()
    sparql = build_city_query(
        q_trim,
        language,
        cfg.search.city_label_languages,
        country_code=cc or None,
        limit=limit,
        candidate_limit=cfg.search.candidate_limit,
    )
    result = _run(sparql, cfg)
    if not result.ok:
        logger.warning("CITYSEARCH wdqs %s: %s", result.status, result.error)
        items = []
    else:
        items = dedupe_cities(result.rows, q_trim, cc, limit)

    logger.info(
        'CITYSEARCH q="%s" country="%s" -> %d items in %.0fms',
        q_trim,
        cc,
        result.row_count,
        result.elapsed_ms,
    )
    return SearchResult(items=items, source=result)


def run_search(request: SearchRequest, config: Optional[AppConfig] = None) -> SearchResult:
    """Dispatch a SearchRequest to the country or city search."""

    if request.kind == "country":
        return country_search(request.query, request.language, request.limit, config=config)
    if request.kind == "city":
        return city_search(
            request.query,
            request.country_code,
            request.language,
            request.limit,
            config=config,
        )
    raise ValueError(f"Unknown search kind: {request.kind!r}")


__all__ = [
    "clamp_limit",
    "country_search",
    "city_search",
    "run_search",
]
