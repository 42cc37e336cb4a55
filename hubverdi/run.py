"""Programmatic uvicorn entry point for Hub Verdi.

Reads host and port from the loaded config (0.0.0.0:4000 by default;
HUBVERDI_PORT overrides the port) and starts uvicorn with conservative
connection limits.

Usage:
    python -m hubverdi.run
    hubverdi                  # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from hubverdi.config import load_config

# Maximum concurrent connections; uvicorn answers 503 beyond this.
UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

# Low keep-alive shortens the Slow Loris window.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the Hub Verdi API server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "hubverdi.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
