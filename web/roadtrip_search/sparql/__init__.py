"""SPARQL protocol client for the Wikidata Query Service."""

from roadtrip_search.sparql.client import DEFAULT_USER_AGENT, SourceResult, execute_sparql

__all__ = ["DEFAULT_USER_AGENT", "SourceResult", "execute_sparql"]
