"""Serve the split-delivery solver API (HTTP solve endpoint + incumbent WebSocket).

Usage:
    python scripts/run_ui_api.py
    python scripts/run_ui_api.py --port 9000 --log-level debug
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

APP_PATH = "src.ui_api.server:app"


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the split-delivery solver API")
    parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Bind address (default: loopback only)"
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port for /api/solve and /api/solve/ws"
    )
    parser.add_argument(
        "--reload", action="store_true", help="Restart on source changes (development)"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning"],
        default="info",
        help="Level for uvicorn and the solver loggers; debug shows every incumbent",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    # Reload needs an import string rather than the app object
    uvicorn.run(
        APP_PATH,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
