from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "OneRoadTrip/Search/2.2 (+local; no-auth)"
SPARQL_RESULTS_JSON = "application/sparql-results+json"

# Statuses meaning the endpoint refused the body-bearing form itself.
_METHOD_REFUSED = (405, 415)

_CHUNK_SIZE = 8192


@dataclass
class SourceResult:
    """
    Outcome of one SPARQL request.

    `status` is one of "ok", "timeout", "http_error", "parse_error" or
    "error"; rows are only meaningful when it is "ok".
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    variables: List[str] = field(default_factory=list)
    row_count: int = 0
    elapsed_ms: float = 0.0
    endpoint_url: str = ""
    status: str = "ok"
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class _UnexpectedPayload(ValueError):
    pass


def _parse_json(payload: Any) -> tuple[List[str], List[Dict[str, Any]]]:
    """Flatten a SPARQL JSON results document into (variables, rows)."""

    if not isinstance(payload, dict):
        raise _UnexpectedPayload("Unexpected JSON structure from SPARQL endpoint.")

    head = payload.get("head") or {}
    vars_list = head.get("vars") if isinstance(head, dict) else None
    variables = [str(v) for v in vars_list] if isinstance(vars_list, list) else []

    results = payload.get("results")
    bindings = results.get("bindings") if isinstance(results, dict) else None
    if not isinstance(bindings, list):
        raise _UnexpectedPayload("SPARQL JSON results are missing 'results.bindings'.")

    rows: List[Dict[str, Any]] = []
    for binding in bindings:
        if not isinstance(binding, dict):
            continue
        row: Dict[str, Any] = {}
        for var, value_obj in binding.items():
            if isinstance(value_obj, dict) and "value" in value_obj:
                row[var] = value_obj["value"]
            else:
                row[var] = value_obj
        rows.append(row)
    return variables, rows


class _DeadlineExceeded(requests.Timeout):
    pass


@dataclass
class _Deadline:
    """One monotonic time budget shared by every attempt of a single query."""

    timeout_s: float
    started: float = field(default_factory=time.monotonic)
    cancelled: threading.Event = field(default_factory=threading.Event)

    def left(self) -> float:
        return max(0.0, self.started + self.timeout_s - time.monotonic())

    def remaining(self) -> float:
        """Seconds left for the next step; raises once the budget is spent."""

        left = self.left()
        if left <= 0 or self.cancelled.is_set():
            raise _DeadlineExceeded(f"deadline of {self.timeout_s:g}s exceeded")
        return left


@dataclass
class _Fetched:
    method: str
    status_code: int
    body: bytes


def _post(endpoint_url: str, query: str, headers: Dict[str, str], deadline: _Deadline) -> requests.Response:
    return requests.post(
        endpoint_url,
        params={"format": "json"},
        data=query.encode("utf-8"),
        headers={"Content-Type": "application/sparql-query", **headers},
        timeout=deadline.remaining(),
        stream=True,
    )


def _get(endpoint_url: str, query: str, headers: Dict[str, str], deadline: _Deadline) -> requests.Response:
    return requests.get(
        endpoint_url,
        params={"format": "json", "query": query},
        headers=headers,
        timeout=deadline.remaining(),
        stream=True,
    )


def _read_body(resp: requests.Response, deadline: _Deadline) -> bytes:
    chunks: List[bytes] = []
    try:
        for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
            deadline.remaining()
            chunks.append(chunk)
    finally:
        resp.close()
    return b"".join(chunks)


def _fetch(
    endpoint_url: str,
    query: str,
    headers: Dict[str, str],
    method: str,
    deadline: _Deadline,
) -> _Fetched:
    if method == "POST":
        resp = _post(endpoint_url, query, headers, deadline)
        if resp.status_code in _METHOD_REFUSED:
            resp.close()
            logger.debug(
                "POST refused by %s (HTTP %s); retrying as GET",
                endpoint_url,
                resp.status_code,
            )
            method = "GET"
            resp = _get(endpoint_url, query, headers, deadline)
    else:
        resp = _get(endpoint_url, query, headers, deadline)
    return _Fetched(method=method, status_code=resp.status_code, body=_read_body(resp, deadline))


def execute_sparql(
    endpoint_url: str,
    query: str,
    timeout_s: float = 15.0,
    method_preference: str = "POST",
    user_agent: str = DEFAULT_USER_AGENT,
) -> SourceResult:
    """
    Execute a SPARQL query against the given endpoint and return a SourceResult.

    The client prefers HTTP POST with `application/sparql-query` against
    `?format=json`. Only when the endpoint refuses that form (405/415) does
    it retry once as GET with the `query` parameter, within what is left of
    the same budget.

    `timeout_s` bounds the whole call, body included: the fetch runs in a
    worker thread and is abandoned (and told to stop reading) once the
    deadline passes, so a slowly trickling response still ends as a timeout.

    Remote failures never raise; they are reported through `status`.
    """

    headers = {
        "Accept": SPARQL_RESULTS_JSON,
        "User-Agent": user_agent,
    }

    start = time.perf_counter()
    deadline = _Deadline(timeout_s)
    status = "ok"
    error: Optional[str] = None
    rows: List[Dict[str, Any]] = []
    variables: List[str] = []
    method = method_preference.upper()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sparql")
    future = executor.submit(_fetch, endpoint_url, query, headers, method, deadline)
    try:
        fetched = future.result(timeout=deadline.left())
        method = fetched.method
        if not 200 <= fetched.status_code < 400:
            status = "http_error"
            text = fetched.body[:500].decode("utf-8", errors="replace")
            error = f"HTTP {fetched.status_code}: {text}"
        else:
            try:
                variables, rows = _parse_json(json.loads(fetched.body))
            except ValueError as exc:
                status = "parse_error"
                error = f"Failed to decode JSON from SPARQL endpoint: {exc}"
    except (FutureTimeout, requests.Timeout) as exc:
        deadline.cancelled.set()
        status = "timeout"
        error = f"SPARQL endpoint did not answer within {timeout_s:g}s: {str(exc) or 'deadline exceeded'}"
    except requests.RequestException as exc:
        status = "error"
        error = str(exc)
    finally:
        executor.shutdown(wait=False)

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    logger.debug(
        "%s %s -> %s, %d rows in %.0fms",
        method,
        endpoint_url,
        status,
        len(rows),
        elapsed_ms,
    )

    return SourceResult(
        rows=rows,
        variables=variables,
        row_count=len(rows),
        elapsed_ms=elapsed_ms,
        endpoint_url=endpoint_url,
        status=status,
        error=error,
    )


__all__ = [
    "DEFAULT_USER_AGENT",
    "SourceResult",
    "execute_sparql",
]
