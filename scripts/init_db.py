import logging

from tracker.config import configure_logging
from tracker.db.session import ENGINE, current_engine_url
from tracker.db.models import Base

logger = logging.getLogger(__name__)


def main():
    configure_logging()
    logger.info("Initializing database schema at %s ...", current_engine_url())
    Base.metadata.create_all(bind=ENGINE)
    logger.info("Database schema initialized successfully.")


if __name__ == "__main__":
    main()
