from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click

from roadtrip_search.config import AppConfig, ConfigError, load_config
from roadtrip_search.models import SearchRequest
from roadtrip_search.queries import build_city_query, build_country_query
from roadtrip_search.service import clamp_limit, run_search


def _echo_json(payload: dict) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="YAML config file (defaults to ROADTRIP_SEARCH_CONFIG or the bundled config).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[Path]) -> None:
    """Country and city autocomplete backed by the Wikidata Query Service."""
    try:
        cfg = load_config(path=config_path, force_reload=True)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, cfg.log_level, logging.INFO)
    )
    ctx.obj = cfg


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (defaults to HOST or the config).")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Bind port.")
@click.pass_obj
def serve_command(cfg: AppConfig, host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP search API."""
    from roadtrip_search.server import create_app

    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    app = create_app(cfg)
    click.echo(f"SEARCH API ON -> http://{bind_host}:{bind_port}  (/countrysearch, /citysearch)")
    app.run(host=bind_host, port=bind_port, threaded=True)


@cli.command("countries")
@click.argument("query")
@click.option("--lang", default=None, help="Label language (defaults to the config).")
@click.option("--limit", default=None, help="Maximum number of items (1-30).")
@click.pass_obj
def countries_command(cfg: AppConfig, query: str, lang: Optional[str], limit: Optional[str]) -> None:
    """Search countries by ISO2 code or name prefix."""
    request = SearchRequest(
        kind="country",
        query=query,
        language=lang or cfg.search.default_language,
        limit=clamp_limit(limit, cfg.search.default_limit, cfg.search.max_limit),
    )
    result = run_search(request, config=cfg)
    if result.remote_failed and result.source is not None:
        click.echo(f"Remote query failed ({result.source.status}): {result.source.error}", err=True)
    _echo_json(result.to_dict())


@cli.command("cities")
@click.argument("query")
@click.option("--country", default=None, help="ISO 3166-1 alpha-2 code to restrict results to.")
@click.option("--lang", default=None, help="Label language (defaults to the config).")
@click.option("--limit", default=None, help="Maximum number of items (1-30).")
@click.pass_obj
def cities_command(
    cfg: AppConfig,
    query: str,
    country: Optional[str],
    lang: Optional[str],
    limit: Optional[str],
) -> None:
    """Search cities by name prefix, optionally within one country."""
    request = SearchRequest(
        kind="city",
        query=query,
        language=lang or cfg.search.default_language,
        country_code=country.upper() if country else None,
        limit=clamp_limit(limit, cfg.search.default_limit, cfg.search.max_limit),
    )
    result = run_search(request, config=cfg)
    if result.remote_failed and result.source is not None:
        click.echo(f"Remote query failed ({result.source.status}): {result.source.error}", err=True)
    _echo_json(result.to_dict())


@cli.command("sparql")
@click.argument("kind", type=click.Choice(["country", "city"]))
@click.argument("query")
@click.option("--country", default=None, help="ISO2 filter (city queries only).")
@click.option("--lang", default=None, help="Label language (defaults to the config).")
@click.option("--limit", default=None, help="Remote LIMIT for city queries.")
@click.pass_obj
def sparql_command(
    cfg: AppConfig,
    kind: str,
    query: str,
    country: Optional[str],
    lang: Optional[str],
    limit: Optional[str],
) -> None:
    """Print the SPARQL text a search would send, without running it."""
    q = query.strip()
    if not q:
        raise click.BadParameter("query must not be empty.", param_hint="QUERY")
    language = lang or cfg.search.default_language
    if kind == "country":
        click.echo(build_country_query(q, language, cfg.search.languages))
        return
    click.echo(
        build_city_query(
            q,
            language,
            cfg.search.city_label_languages,
            country_code=country,
            limit=clamp_limit(limit, cfg.search.default_limit, cfg.search.max_limit),
            candidate_limit=cfg.search.candidate_limit,
        )
    )


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
