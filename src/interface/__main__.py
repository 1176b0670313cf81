# ABOUTME: Entry point for launching the HTTP API or a turn worker.
# ABOUTME: Provides simple commands: python -m src.interface api | worker

import argparse
import sys

from src.config.settings import get_settings
from src.utils.logging import setup_logging


def run_api(host: str, port: int) -> None:
    """Serve the FastAPI app with uvicorn"""
    import uvicorn

    from src.api.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


def run_worker() -> None:
    """Run an RQ worker on the turn queue"""
    from rq import Worker

    from src.workers.queue_config import create_redis_connection, get_turn_queue

    settings = get_settings()
    redis_conn = create_redis_connection(settings.redis_url)
    queue = get_turn_queue(redis_conn, settings)
    Worker([queue], connection=redis_conn).work()


def main() -> None:
    parser = argparse.ArgumentParser(description="Turn phase engine")
    parser.add_argument("command", choices=["api", "worker"])
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(log_level=settings.log_level, log_dir=settings.log_dir)

    try:
        if args.command == "api":
            run_api(args.host, args.port)
        else:
            run_worker()
    except ConnectionError as e:
        print(f"Error: Could not connect to Redis: {e}")
        print(f"Make sure Redis is reachable at {get_settings().redis_url}")
        sys.exit(1)


if __name__ == "__main__":
    main()
