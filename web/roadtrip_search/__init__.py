"""
Search API for the OneRoadTrip front-end.

This package builds Wikidata SPARQL queries for country and city
autocomplete, runs them against the public query service, and ranks and
deduplicates the rows into the small JSON shape the widget consumes.
"""

__all__ = []
