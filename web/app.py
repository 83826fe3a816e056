import logging

from roadtrip_search.config import load_config
from roadtrip_search.server import create_app


cfg = load_config()
logging.basicConfig(level=getattr(logging, cfg.log_level, logging.INFO))

# WSGI entrypoint, e.g. `flask --app web/app.py run` or any WSGI server.
app = create_app(cfg)


def main() -> None:
    """Run the search API on HOST/PORT (or the configured defaults)."""

    print(
        f"SEARCH API ON -> http://{cfg.server.host}:{cfg.server.port}  "
        "(/countrysearch, /citysearch)"
    )
    app.run(host=cfg.server.host, port=cfg.server.port, threaded=True)


if __name__ == "__main__":
    main()
