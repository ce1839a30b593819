import logging

from app.db.session import engine
from app.db.base import Base
import app.db.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


def init_db(bind=None) -> None:
    """Create all tables that do not exist yet."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.info(f"Database tables ensured: {sorted(Base.metadata.tables)}")


if __name__ == "__main__":
    from app.core.logging_config import setup_logging

    setup_logging()
    init_db()
