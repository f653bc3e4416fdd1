"""CLI entrypoint for running the chat server."""
from __future__ import annotations

import argparse
import os

from config import SCHEDULER_AUTOSTART

from . import create_app


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the agent chat server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Port to bind (default: 3000)")
    parser.add_argument("--log-dir", default=None, help="Directory for conversation logs")
    parser.add_argument("--scheduler", action="store_true", help="Run the background job loop")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    args = parser.parse_args()

    app = create_app(log_dir=args.log_dir, autostart_scheduler=args.scheduler or SCHEDULER_AUTOSTART)

    if not args.debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true":
        log_dir = app.extensions["agent_lab"].message_logger.log_dir
        print(f"Server running on http://{args.host}:{args.port} (logs in {log_dir})", flush=True)

    try:
        app.run(host=args.host, port=args.port, debug=args.debug)
    finally:
        app.extensions["agent_lab"].shutdown()


if __name__ == "__main__":  # pragma: no cover
    main()
