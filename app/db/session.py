
import logging
import time
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool
from app.core.config import settings

logger = logging.getLogger(__name__)

_db_url = str(settings.DATABASE_URL)
# Log only the scheme and host part, never credentials
logger.info("Using database %s", _db_url.split("@")[-1][:50])

def build_engine(url: str):
    if url.startswith("sqlite"):
        # SQLite connections are shared with the scheduler thread
        return create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    return create_engine(
        url,
        poolclass=NullPool,
        pool_pre_ping=True,
        pool_recycle=1800,  # Recycle connections every 30 minutes (shorter for cloud environments)
        echo=False,
    )

engine = build_engine(_db_url)

SessionLocal = sessionmaker(engine, expire_on_commit=False, class_=Session)

def check_db_connection(db: Session) -> bool:
    """
    Simple database connection test that returns True/False without raising exceptions.
    Useful for health checks where you want to test connectivity without failing the endpoint.
    """
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database connection test failed: %s", e)
        return False

def get_db():
    """
    Dependency that provides a database session with retry logic on connection errors.
    """
    max_retries = 3
    retry_delay = 1  # seconds

    for attempt in range(max_retries):
        session = SessionLocal()
        try:
            session.connection()
        except OperationalError as e:
            session.close()
            if attempt < max_retries - 1:
                logger.warning("Database connection issue, attempt %s/%s. Retrying in %ss... Error: %s", attempt + 1, max_retries, retry_delay, e)
                time.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
                continue
            logger.error("Database connection failed after %s attempts: %s", max_retries, e)
            raise
        try:
            yield session
        finally:
            session.close()
        return
