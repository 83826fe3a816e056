from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


CONFIG_ENV_VAR = "ROADTRIP_SEARCH_CONFIG"
HOST_ENV_VAR = "HOST"
PORT_ENV_VAR = "PORT"

DEFAULT_LANGUAGES = ["fr", "en", "it", "es", "pt", "ar"]
DEFAULT_CITY_LABEL_LANGUAGES = ["fr", "en", "es", "it", "pt", "ar"]


@dataclass
class SparqlConfig:
    endpoint_url: str = "https://query.wikidata.org/sparql"
    user_agent: str = "OneRoadTrip/Search/2.2 (+local; no-auth)"
    timeout_s: float = 15.0
    method_preference: str = "POST"


@dataclass
class SearchConfig:
    default_language: str = "fr"
    languages: List[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))
    city_label_languages: List[str] = field(
        default_factory=lambda: list(DEFAULT_CITY_LABEL_LANGUAGES)
    )
    default_limit: int = 12
    max_limit: int = 30
    candidate_limit: int = 50


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3031


@dataclass
class AppConfig:
    raw: Dict[str, Any] = field(default_factory=dict)
    sparql: SparqlConfig = field(default_factory=SparqlConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"


class ConfigError(RuntimeError):
    """Raised when the search API configuration is missing or invalid."""


def _default_config_path() -> Path:
    """
    Determine the bundled config path.

    Resolved relative to the `web/` directory so it works both when the
    package is installed in editable mode and when run from a checkout.
    """

    here = Path(__file__).resolve()
    web_root = here.parents[1]  # .../web
    return web_root / "configs" / "default.yaml"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(
            f"Search config file not found at '{path}'. "
            f"Set {CONFIG_ENV_VAR} to a valid YAML config."
        )
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config YAML at '{path}': {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config at '{path}' must be a YAML mapping/object.")
    return data


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = raw.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{key}' section must be a mapping/object.")
    return section


def _coerce_languages(value: Any, key: str, default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    if not isinstance(value, list) or not value:
        raise ConfigError(f"'{key}' must be a non-empty list of language codes.")
    return [str(v).strip() for v in value if str(v).strip()]


def _coerce_sparql(section: Dict[str, Any]) -> SparqlConfig:
    defaults = SparqlConfig()
    url = str(section.get("endpoint_url") or defaults.endpoint_url)
    method = str(section.get("method_preference", defaults.method_preference)).upper()
    if method not in {"POST", "GET"}:
        raise ConfigError("'sparql.method_preference' must be POST or GET.")
    try:
        timeout_s = float(section.get("timeout_s", defaults.timeout_s))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'sparql.timeout_s' must be a number: {exc}") from exc
    if timeout_s <= 0:
        raise ConfigError("'sparql.timeout_s' must be positive.")
    return SparqlConfig(
        endpoint_url=url,
        user_agent=str(section.get("user_agent") or defaults.user_agent),
        timeout_s=timeout_s,
        method_preference=method,
    )


def _coerce_search(section: Dict[str, Any]) -> SearchConfig:
    defaults = SearchConfig()
    try:
        cfg = SearchConfig(
            default_language=str(section.get("default_language", defaults.default_language)),
            languages=_coerce_languages(
                section.get("languages"), "search.languages", DEFAULT_LANGUAGES
            ),
            city_label_languages=_coerce_languages(
                section.get("city_label_languages"),
                "search.city_label_languages",
                DEFAULT_CITY_LABEL_LANGUAGES,
            ),
            default_limit=int(section.get("default_limit", defaults.default_limit)),
            max_limit=int(section.get("max_limit", defaults.max_limit)),
            candidate_limit=int(section.get("candidate_limit", defaults.candidate_limit)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in 'search' section: {exc}") from exc

    if cfg.max_limit < 1:
        raise ConfigError("'search.max_limit' must be at least 1.")
    if not 1 <= cfg.default_limit <= cfg.max_limit:
        raise ConfigError("'search.default_limit' must be between 1 and 'search.max_limit'.")
    return cfg


def _coerce_server(section: Dict[str, Any]) -> ServerConfig:
    defaults = ServerConfig()
    host = os.environ.get(HOST_ENV_VAR) or str(section.get("host", defaults.host))
    port_raw = os.environ.get(PORT_ENV_VAR) or section.get("port", defaults.port)
    try:
        port = int(port_raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid server port {port_raw!r}.") from exc
    return ServerConfig(host=host, port=port)


def build_config(raw: Dict[str, Any]) -> AppConfig:
    """Validate a raw mapping (as parsed from YAML) into an AppConfig."""

    logging_section = _section(raw, "logging")
    return AppConfig(
        raw=raw,
        sparql=_coerce_sparql(_section(raw, "sparql")),
        search=_coerce_search(_section(raw, "search")),
        server=_coerce_server(_section(raw, "server")),
        log_level=str(logging_section.get("level", "INFO")).upper(),
    )


_CACHED_CONFIG: Optional[AppConfig] = None


def load_config(path: Optional[Path] = None, force_reload: bool = False) -> AppConfig:
    """
    Load and validate the search API configuration.

    Precedence:
    1. An explicit `path` argument.
    2. The path from ROADTRIP_SEARCH_CONFIG if set.
    3. The bundled `web/configs/default.yaml`, or built-in defaults when it
       is not shipped alongside the package.
    """

    global _CACHED_CONFIG
    if _CACHED_CONFIG is not None and not force_reload and path is None:
        return _CACHED_CONFIG

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if path is not None:
        raw = _load_yaml(Path(path).expanduser())
    elif env_path:
        raw = _load_yaml(Path(env_path).expanduser())
    else:
        default_path = _default_config_path()
        raw = _load_yaml(default_path) if default_path.exists() else {}

    _CACHED_CONFIG = build_config(raw)
    return _CACHED_CONFIG


__all__ = [
    "AppConfig",
    "SparqlConfig",
    "SearchConfig",
    "ServerConfig",
    "ConfigError",
    "CONFIG_ENV_VAR",
    "build_config",
    "load_config",
]
