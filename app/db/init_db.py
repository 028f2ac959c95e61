import logging
from app.db.session import engine
from app.db.models import Base

logger = logging.getLogger(__name__)

def init_db(bind=None):
    """Initialize database tables"""
    try:
        Base.metadata.create_all(bind or engine)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database: %s", e)
        raise

if __name__ == "__main__":
    init_db()
