"""
Out-of-band schema management. Run from a deploy step or a shell, never from
an HTTP handler:

    python manage_db.py create
    python manage_db.py drop --yes
"""
import argparse
import logging
import sys
from sqlalchemy.engine import make_url
from database import Base, engine
import models  # noqa: F401  registers the tables on Base.metadata

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def create_tables(bind=engine):
    Base.metadata.create_all(bind=bind)
    return sorted(Base.metadata.tables)


def drop_tables(bind=engine):
    Base.metadata.drop_all(bind=bind)
    return sorted(Base.metadata.tables)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Manage the Daily Mood database schema.")
    parser.add_argument("command", choices=["create", "drop"])
    parser.add_argument("--yes", action="store_true", help="confirm destructive commands")
    args = parser.parse_args(argv)

    target = make_url(str(engine.url)).render_as_string(hide_password=True)
    logger.info(f"Using database {target}")

    if args.command == "create":
        tables = create_tables()
        logger.info(f"Schema ready: {', '.join(tables)}")
        return 0

    if not args.yes:
        logger.error("Refusing to drop tables without --yes")
        return 1
    tables = drop_tables()
    logger.info(f"Dropped: {', '.join(tables)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
