from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional

import pytest

from roadtrip_search.config import build_config
from roadtrip_search.sparql.client import SourceResult


class FakeResponse:
    """Just enough of requests.Response for the SPARQL client."""

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        text: Optional[str] = None,
        chunk_delay_s: float = 0.0,
        chunk_size: Optional[int] = None,
    ):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)
        self.chunk_delay_s = chunk_delay_s
        self.chunk_size = chunk_size
        self.chunks_sent = 0
        self.closed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def iter_content(self, chunk_size: int = 1):
        body = self.text.encode("utf-8")
        size = self.chunk_size or chunk_size
        for start in range(0, len(body), size):
            if self.closed:
                return
            if self.chunk_delay_s:
                time.sleep(self.chunk_delay_s)
            self.chunks_sent += 1
            yield body[start : start + size]

    def close(self) -> None:
        self.closed = True


def bindings(*rows: Dict[str, str]) -> Dict[str, Any]:
    """Wrap plain rows in the SPARQL JSON results structure."""

    variables: List[str] = []
    for row in rows:
        for key in row:
            if key not in variables:
                variables.append(key)
    return {
        "head": {"vars": variables},
        "results": {
            "bindings": [
                {k: {"type": "literal", "value": v} for k, v in row.items()} for row in rows
            ]
        },
    }


def ok_result(rows: List[Dict[str, Any]]) -> SourceResult:
    return SourceResult(rows=rows, row_count=len(rows), elapsed_ms=1.0, status="ok")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("HOST", "PORT", "ROADTRIP_SEARCH_CONFIG"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config():
    return build_config({})
