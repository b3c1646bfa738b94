"""
TimeBlocker — Entry Point.

`python main.py` (or `python main.py serve`) starts the HTTP API.
`python main.py seed-demo` recreates the demo account's tasks and blocks.
"""

import argparse
import logging

from timeblocker.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


def serve() -> None:
    import uvicorn

    from timeblocker.api.app import create_app

    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT, log_config=None)


def seed_demo() -> None:
    from timeblocker.core.demo import DEMO_EMAIL, DEMO_PASSWORD, reset_demo_data
    from timeblocker.data.db import open_stores

    reset_demo_data(open_stores(settings.DATABASE_PATH))
    logger.info("Demo account ready: %s / %s", DEMO_EMAIL, DEMO_PASSWORD)


def main() -> None:
    parser = argparse.ArgumentParser(description="TimeBlocker backend")
    parser.add_argument(
        "command", nargs="?", default="serve", choices=("serve", "seed-demo"),
    )
    args = parser.parse_args()
    if args.command == "seed-demo":
        seed_demo()
    else:
        serve()


if __name__ == "__main__":
    main()
