from __future__ import annotations

import logging

import pytest

from roadtrip_search import service
from roadtrip_search.models import SearchRequest
from roadtrip_search.service import city_search, clamp_limit, country_search, run_search
from roadtrip_search.sparql.client import SourceResult

from conftest import ok_result


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, 12),
        ("", 12),
        ("abc", 12),
        ("nan", 12),
        ("inf", 12),
        ("-5", 1),
        ("0", 1),
        (0, 1),
        ("7", 7),
        ("7.9", 7),
        ("30", 30),
        ("31", 30),
        (10_000, 30),
    ],
)
def test_clamp_limit(raw, expected):
    value = clamp_limit(raw)
    assert value == expected
    assert isinstance(value, int) and 1 <= value <= 30


class FakeRemote:
    def __init__(self, result):
        self.result = result
        self.queries = []
        self.kwargs = []

    def __call__(self, endpoint_url, query, **kwargs):
        self.queries.append(query)
        self.kwargs.append(kwargs)
        return self.result


def test_empty_query_makes_no_remote_call(monkeypatch, config):
    remote = FakeRemote(ok_result([]))
    monkeypatch.setattr(service, "execute_sparql", remote)

    assert country_search("   ", config=config).items == []
    assert city_search("", "FR", config=config).items == []
    assert remote.queries == []


def test_country_search_ranks_rows(monkeypatch, config):
    remote = FakeRemote(
        ok_result(
            [
                {"c": "x/Q1", "cLabel": "Franconia", "iso2": "", "sitelinks": "500"},
                {"c": "x/Q142", "cLabel": "France", "iso2": "FR", "sitelinks": "300"},
            ]
        )
    )
    monkeypatch.setattr(service, "execute_sparql", remote)

    result = country_search("fr", "fr", 5, config=config)

    assert [i.name for i in result.items] == ["France", "Franconia"]
    assert not result.remote_failed
    assert remote.kwargs[0] == {
        "timeout_s": 15.0,
        "method_preference": "POST",
        "user_agent": "OneRoadTrip/Search/2.2 (+local; no-auth)",
    }


def test_remote_failure_is_distinguishable_but_empty(monkeypatch, config, caplog):
    failed = SourceResult(status="timeout", error="took too long")
    monkeypatch.setattr(service, "execute_sparql", FakeRemote(failed))

    with caplog.at_level(logging.WARNING):
        result = city_search("Paris", "FR", config=config)

    assert result.items == []
    assert result.remote_failed
    assert result.source.status == "timeout"
    assert result.to_dict() == {"items": []}
    assert "CITYSEARCH wdqs timeout" in caplog.text


def test_city_search_passes_strict_country_filter(monkeypatch, config, caplog):
    remote = FakeRemote(ok_result([{"itLabel": "Toulouse", "coord": "Point(1.44 43.6)", "cIso": "FR"}]))
    monkeypatch.setattr(service, "execute_sparql", remote)

    with caplog.at_level(logging.INFO):
        result = city_search(" toul ", "fr", "fr", 3, config=config)

    assert '?country wdt:P297 "FR"' in remote.queries[0]
    assert "LIMIT 3" in remote.queries[0]
    assert result.items[0].to_dict()["lat"] == 43.6
    assert 'CITYSEARCH q="toul" country="FR" -> 1 items' in caplog.text


def test_run_search_dispatches(monkeypatch, config):
    remote = FakeRemote(ok_result([]))
    monkeypatch.setattr(service, "execute_sparql", remote)

    run_search(SearchRequest(kind="country", query="de"), config=config)
    run_search(SearchRequest(kind="city", query="Berlin", country_code="DE"), config=config)

    assert "wd:Q6256" in remote.queries[0]
    assert "EntitySearch" in remote.queries[1]
    with pytest.raises(ValueError):
        run_search(SearchRequest(kind="region", query="x"), config=config)  # type: ignore[arg-type]
