'''
Liveness checks: a plain API status and one that also touches the database.
'''
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import check_db_connection, get_db
from app.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

@router.get("/health")
async def health():
    """
    Simple health check. Does not require database connectivity.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "API is running",
        "service": settings.APP_NAME,
    }

@router.get("/health/full")
async def health_full(db: Session = Depends(get_db)):
    """
    Verifies both API and database connectivity.
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected",
        "service": settings.APP_NAME,
    }
    if not check_db_connection(db):
        logger.error("Database health check failed")
        health_status["status"] = "unhealthy"
        health_status["database"] = "disconnected"
    return health_status
