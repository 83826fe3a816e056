from __future__ import annotations

import pytest
import requests
from werkzeug.exceptions import BadRequest

from roadtrip_search import service
from roadtrip_search.server import create_app
from roadtrip_search.sparql import client

from conftest import FakeResponse, bindings, ok_result


@pytest.fixture
def app(config):
    app = create_app(config)
    app.testing = True
    return app


@pytest.fixture
def http(app):
    return app.test_client()


def _remote(monkeypatch, rows):
    calls = []

    def fake(endpoint_url, query, **kwargs):
        calls.append(query)
        return ok_result(rows)

    monkeypatch.setattr(service, "execute_sparql", fake)
    return calls


def test_ping(http):
    resp = http.get("/ping")

    assert resp.status_code == 200
    assert resp.get_json() == {
        "ok": True,
        "api": "search",
        "endpoints": ["/countrysearch", "/citysearch"],
    }
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert resp.headers["Access-Control-Max-Age"] == "86400"


@pytest.mark.parametrize("path", ["/countrysearch", "/anything/else"])
def test_options_preflight(http, path):
    resp = http.open(path, method="OPTIONS")

    assert resp.status_code == 204
    assert resp.data == b""
    assert resp.headers["Access-Control-Allow-Methods"] == "GET,OPTIONS"
    assert resp.headers["Access-Control-Allow-Headers"] == "content-type"


def test_unknown_path(http):
    resp = http.get("/unknownpath")

    assert resp.status_code == 404
    assert resp.get_json() == {"error": "not_found"}
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_wrong_method_is_not_found(http):
    resp = http.post("/countrysearch")

    assert resp.status_code == 404
    assert resp.get_json() == {"error": "not_found"}


def test_countrysearch_end_to_end(http, monkeypatch):
    post_calls = []

    def fake_post(url, **kwargs):
        post_calls.append(kwargs)
        return FakeResponse(
            payload=bindings(
                {"c": "http://www.wikidata.org/entity/Q1", "cLabel": "Franconia", "sitelinks": "900"},
                {
                    "c": "http://www.wikidata.org/entity/Q142",
                    "cLabel": "France",
                    "iso2": "FR",
                    "sitelinks": "400",
                },
            )
        )

    monkeypatch.setattr(client.requests, "post", fake_post)

    resp = http.get("/countrysearch?q=fr&lang=fr&limit=5")

    assert resp.status_code == 200
    items = resp.get_json()["items"]
    assert items[0] == {
        "name": "France",
        "displayName": "France",
        "countryCode": "FR",
        "admin1": "",
        "lat": None,
        "lon": None,
    }
    assert len(items) == 2
    assert 0 < post_calls[0]["timeout"] <= 15.0


def test_citysearch_dedupes_identical_rows(http, monkeypatch):
    row = {"itLabel": "Paris", "coord": "Point(2.3522 48.8566)", "cIso": "FR", "pop": "2100000"}
    calls = _remote(monkeypatch, [row, dict(row)])

    resp = http.get("/citysearch?q=Paris&country=FR")

    assert resp.status_code == 200
    items = resp.get_json()["items"]
    assert items == [
        {
            "name": "Paris",
            "displayName": "Paris",
            "countryCode": "FR",
            "admin1": "",
            "lat": 48.8566,
            "lon": 2.3522,
        }
    ]
    assert '?country wdt:P297 "FR"' in calls[0]


def test_citysearch_accepts_legacy_parameter_names(http, monkeypatch):
    calls = _remote(monkeypatch, [])

    resp = http.get("/citysearch?query=lyon&countryCode=fr&lang=en&limit=99")

    assert resp.status_code == 200
    assert 'mwapi:search "lyon"' in calls[0]
    assert 'mwapi:language "en"' in calls[0]
    assert '?country wdt:P297 "FR"' in calls[0]
    assert "LIMIT 30" in calls[0]


@pytest.mark.parametrize("limit", ["-3", "0", "abc", "1e9", ""])
def test_limit_is_clamped(http, monkeypatch, limit):
    rows = [{"itLabel": f"Town {n}", "coord": f"Point({n} {n})"} for n in range(40)]
    _remote(monkeypatch, rows)

    items = http.get(f"/citysearch?q=town&limit={limit}").get_json()["items"]

    assert 1 <= len(items) <= 30


def test_remote_timeout_yields_empty_items(http, monkeypatch):
    def timeout(url, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(client.requests, "post", timeout)

    for path in ("/citysearch?q=Paris", "/countrysearch?q=fr"):
        resp = http.get(path)
        assert resp.status_code == 200
        assert resp.get_json() == {"items": []}


def test_empty_query_yields_empty_items(http):
    assert http.get("/countrysearch").get_json() == {"items": []}
    assert http.get("/citysearch?q=%20").get_json() == {"items": []}


def test_unhandled_exception_is_500(http, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("kaput")

    monkeypatch.setattr(service, "execute_sparql", boom)

    resp = http.get("/countrysearch?q=fr")

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "server_error", "detail": "kaput"}
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_other_http_errors_keep_their_status(http, monkeypatch):
    def reject(*args, **kwargs):
        raise BadRequest("unsupported query")

    monkeypatch.setattr(service, "execute_sparql", reject)

    resp = http.get("/countrysearch?q=fr")

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "server_error", "detail": "unsupported query"}
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
