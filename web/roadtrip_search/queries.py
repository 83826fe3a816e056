from __future__ import annotations

from typing import Optional, Sequence


PREFIX_BLOCK = """PREFIX wd: <http://www.wikidata.org/entity/>
PREFIX wdt: <http://www.wikidata.org/prop/direct/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>
PREFIX skos: <http://www.w3.org/2004/02/skos/core#>
PREFIX wikibase: <http://wikiba.se/ontology#>
PREFIX bd: <http://www.bigdata.com/rdf#>
PREFIX mwapi: <https://www.mediawiki.org/ontology#API/>
"""

# Sovereign state.
COUNTRY_CLASS = "wd:Q6256"

# Populated place, city, capital, municipality.
CITY_CLASSES = ("wd:Q486972", "wd:Q515", "wd:Q5119", "wd:Q15284")

MAX_REMOTE_LIMIT = 50


def escape_literal(value: object) -> str:
    """
    Escape text for use inside a double-quoted SPARQL string literal.

    Backslashes and double quotes are backslash-escaped, as are raw line
    breaks (not allowed inside a short literal). None becomes "".
    """

    if value is None:
        return ""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return text.replace("\n", "\\n").replace("\r", "\\r")


def _language_list(languages: Sequence[str]) -> str:
    return ",".join(f'"{escape_literal(lang)}"' for lang in languages)


def _label_languages(language: str, languages: Sequence[str]) -> str:
    return escape_literal(",".join([language, *languages]))


def build_country_query(q: str, language: str, languages: Sequence[str]) -> str:
    """
    Build the country autocomplete query.

    Matches sovereign states whose ISO 3166-1 alpha-2 code equals the
    uppercased query, or that carry a label or alias in one of `languages`
    starting with the query (case-insensitive). `q` must already be trimmed.
    """

    needle = escape_literal(q)
    iso = escape_literal(q.upper())
    langs = _language_list(languages)

    return f"""{PREFIX_BLOCK}
SELECT DISTINCT ?c ?cLabel ?iso2 ?sitelinks WHERE {{
  ?c wdt:P31/wdt:P279* {COUNTRY_CLASS} .
  OPTIONAL {{ ?c wdt:P297 ?iso2 }}

  # prefix hit on a label or an alias in the supported languages
  OPTIONAL {{
    ?c rdfs:label ?lab .
    FILTER(LANG(?lab) IN ({langs}))
    FILTER(STRSTARTS(LCASE(?lab), LCASE("{needle}")))
  }}
  OPTIONAL {{
    ?c skos:altLabel ?al .
    FILTER(LANG(?al) IN ({langs}))
    FILTER(STRSTARTS(LCASE(?al), LCASE("{needle}")))
  }}

  FILTER(
    (BOUND(?iso2) && UCASE(?iso2) = "{iso}") ||
    BOUND(?lab) || BOUND(?al)
  )
  ?c wikibase:sitelinks ?sitelinks .
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "{_label_languages(language, languages)}" }}
}}
"""


def remote_limit(limit: int) -> int:
    return max(1, min(MAX_REMOTE_LIMIT, int(limit)))


def build_city_query(
    q: str,
    language: str,
    label_languages: Sequence[str],
    country_code: Optional[str] = None,
    limit: int = 12,
    candidate_limit: int = MAX_REMOTE_LIMIT,
) -> str:
    """
    Build the city autocomplete query.

    Candidates come from the EntitySearch MediaWiki API (a prefix search over
    labels capped at `candidate_limit`) and are then restricted to populated
    places with coordinates. A country code, when given, is a strict filter:
    only places whose country (directly or through their administrative
    parents) carries that ISO2 code are returned.
    """

    cc = (country_code or "").upper()
    country_filter = ""
    if cc:
        country_filter = f"""
  ?it (wdt:P17|wdt:P131*/wdt:P17) ?country .
  ?country wdt:P297 "{escape_literal(cc)}" .
"""
    classes = " ".join(CITY_CLASSES)

    return f"""{PREFIX_BLOCK}
SELECT ?it ?itLabel ?coord ?pop ?cIso WHERE {{
  SERVICE wikibase:mwapi {{
    bd:serviceParam wikibase:endpoint "www.wikidata.org" .
    bd:serviceParam wikibase:api "EntitySearch" .
    bd:serviceParam mwapi:search "{escape_literal(q)}" .
    bd:serviceParam mwapi:language "{escape_literal(language)}" .
    bd:serviceParam mwapi:limit "{int(candidate_limit)}" .
    ?it wikibase:apiOutputItem mwapi:item .
  }}

  VALUES ?cls {{ {classes} }}
  ?it wdt:P31/wdt:P279* ?cls .
  ?it wdt:P625 ?coord .
{country_filter}
  OPTIONAL {{ ?it wdt:P1082 ?pop . }}
  OPTIONAL {{
    ?it (wdt:P17|wdt:P131*/wdt:P17) ?c2 .
    ?c2 wdt:P297 ?cIso .
  }}

  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "{_label_languages(language, label_languages)}" }}
}}
ORDER BY DESC(?pop) STRLEN(STR(?itLabel))
LIMIT {remote_limit(limit)}
"""


__all__ = [
    "PREFIX_BLOCK",
    "COUNTRY_CLASS",
    "CITY_CLASSES",
    "escape_literal",
    "remote_limit",
    "build_country_query",
    "build_city_query",
]
