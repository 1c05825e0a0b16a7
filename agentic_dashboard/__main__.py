"""Run the dashboard backend over HTTP.

Usage:
    python -m agentic_dashboard [--host HOST] [--port PORT] [--env-file FILE]

Serves the JSON API under /api and the MCP endpoint at /mcp. Tools started
through the dashboard run in their own sessions and keep running when the
server stops; only their exit bookkeeping is lost.
"""

import argparse
import asyncio
import logging
from dataclasses import replace
from pathlib import Path

import uvicorn

from agentic_dashboard.config import Config
from agentic_dashboard.server import create_server

log = logging.getLogger(__name__)


async def _run(config: Config) -> None:
    server = create_server(config)

    # Run uvicorn in this event loop so the runner's exit watchers
    # (stream readers, completion callbacks) stay alive with it.
    app = server.streamable_http_app()
    uvi = uvicorn.Server(
        uvicorn.Config(app, host=config.host, port=config.port, log_level="info")
    )
    await uvi.serve()
    log.info("Dashboard stopped; spawned tools left running")


def main() -> None:
    parser = argparse.ArgumentParser(description="Agentic tools dashboard backend")
    parser.add_argument("--host", help="Interface to bind (default: DASHBOARD_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (default: DASHBOARD_PORT or 3000)")
    parser.add_argument("--env-file", type=Path, help="Load settings from this .env file")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [agentic-dashboard] %(levelname)s %(message)s",
    )

    config = Config.from_env(args.env_file)
    if args.host:
        config = replace(config, host=args.host)
    if args.port:
        config = replace(config, port=args.port)

    log.info("Starting dashboard on http://%s:%d (state: %s)", config.host, config.port, config.state_file)
    asyncio.run(_run(config))


if __name__ == "__main__":
    main()
