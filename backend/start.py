"""Prepare the database before the API process starts.

A database without the ``profiles`` table gets every table created from the
models and Alembic stamped to head; anything else is upgraded through the
migrations. ``--seed`` loads the demo accounts afterwards.
"""

import argparse
import logging
import subprocess
import sys

from sqlalchemy import inspect

import coachdesk.models  # noqa: F401
from coachdesk.core.config import get_settings
from coachdesk.db.base import Base
from coachdesk.db.seed import seed_demo_data
from coachdesk.db.session import SessionLocal, engine
from coachdesk.main import configure_logging

logger = logging.getLogger("coachdesk.start")


def _alembic(*args: str) -> None:
    subprocess.check_call([sys.executable, "-m", "alembic", *args])


def prepare_database(seed: bool = False) -> None:
    if "profiles" in inspect(engine).get_table_names():
        logger.info("Existing schema found, applying migrations")
        _alembic("upgrade", "head")
    else:
        logger.info("Empty database, creating tables and stamping head")
        Base.metadata.create_all(bind=engine)
        _alembic("stamp", "head")

    if seed:
        with SessionLocal() as session:
            seed_demo_data(session)
        logger.info("Demo data loaded")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", action="store_true", help="load demo accounts and tasks")
    args = parser.parse_args()

    configure_logging(get_settings().log_level)
    prepare_database(seed=args.seed)


if __name__ == "__main__":
    main()
