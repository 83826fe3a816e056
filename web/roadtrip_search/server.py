"""
HTTP surface for the search API.

Only request parsing and JSON/CORS plumbing live here; the search logic is
in :mod:`roadtrip_search.service`.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException, MethodNotAllowed, NotFound

from roadtrip_search.config import AppConfig, load_config
from roadtrip_search.models import SearchRequest
from roadtrip_search.service import clamp_limit, run_search


logger = logging.getLogger(__name__)

ENDPOINTS = ["/countrysearch", "/citysearch"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS",
    "Access-Control-Allow-Headers": "content-type",
    "Access-Control-Max-Age": "86400",
}


def _config() -> AppConfig:
    return current_app.config["SEARCH_CONFIG"]


def _arg(*names: str) -> str:
    for name in names:
        value = request.args.get(name)
        if value:
            return value
    return ""


def _search_request(kind: str) -> SearchRequest:
    cfg = _config().search
    if kind == "city":
        query = _arg("q", "query")
        country = _arg("country", "countryCode").upper() or None
    else:
        query = _arg("q")
        country = None
    return SearchRequest(
        kind=kind,  # type: ignore[arg-type]
        query=query,
        language=_arg("lang") or cfg.default_language,
        country_code=country,
        limit=clamp_limit(
            request.args.get("limit"),
            default=cfg.default_limit,
            maximum=cfg.max_limit,
        ),
    )


def ping():
    return jsonify({"ok": True, "api": "search", "endpoints": ENDPOINTS})


def countrysearch():
    result = run_search(_search_request("country"), config=_config())
    return jsonify(result.to_dict())


def citysearch():
    result = run_search(_search_request("city"), config=_config())
    return jsonify(result.to_dict())


def _preflight() -> Optional[Response]:
    if request.method == "OPTIONS":
        return Response(status=204)
    return None


def _add_cors(response: Response) -> Response:
    response.headers.update(CORS_HEADERS)
    return response


def _not_found(exc: HTTPException):
    return jsonify({"error": "not_found"}), 404


def _server_error(exc: Exception):
    # Other HTTP errors share the server_error body but keep their own status.
    if isinstance(exc, HTTPException) and not isinstance(exc, (NotFound, MethodNotAllowed)):
        return jsonify({"error": "server_error", "detail": exc.description}), exc.code
    logger.exception("Unhandled error while serving %s", request.path)
    return jsonify({"error": "server_error", "detail": str(exc)}), 500


def create_app(config: Optional[AppConfig] = None) -> Flask:
    """Build the Flask application serving /ping, /countrysearch and /citysearch."""

    app = Flask(__name__)
    app.config["SEARCH_CONFIG"] = config or load_config()
    app.json.ensure_ascii = False  # type: ignore[attr-defined]

    app.before_request(_preflight)
    app.after_request(_add_cors)

    app.add_url_rule("/ping", "ping", ping)
    app.add_url_rule("/countrysearch", "countrysearch", countrysearch, methods=["GET"])
    app.add_url_rule("/citysearch", "citysearch", citysearch, methods=["GET"])

    app.register_error_handler(NotFound, _not_found)
    app.register_error_handler(MethodNotAllowed, _not_found)
    app.register_error_handler(Exception, _server_error)
    return app


__all__ = [
    "ENDPOINTS",
    "CORS_HEADERS",
    "create_app",
]
