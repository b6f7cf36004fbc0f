"""Create the users and payments tables in the configured database."""
from sqlalchemy import inspect

from coursepay.config import load_settings
from coursepay.database import database_time, init_db, make_engine, make_session_factory
from coursepay.logger import get_logger

logger = get_logger(__name__)


def setup_database(database_url: str) -> list:
    engine = make_engine(database_url)
    try:
        db = make_session_factory(engine)()
        try:
            logger.info("Connection test passed: %s", database_time(db))
        finally:
            db.close()

        init_db(engine)
        tables = sorted(inspect(engine).get_table_names())
        logger.info("Tables: %s", ", ".join(tables))
        return tables
    finally:
        engine.dispose()


def main():
    setup_database(load_settings().database_url)


if __name__ == "__main__":
    main()
