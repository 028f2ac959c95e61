import logging
from fastapi import APIRouter, Depends
from app.api.deps import Authed
from app.repositories.health_repo import SYNC_FIELDS, upsert_health_day
from app.schemas.health_data import HealthSyncIn, HealthSyncOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health-data", tags=["health-data"])

@router.post("/sync", response_model=HealthSyncOut)
async def sync(payload: HealthSyncIn, ctx=Depends(Authed)):
    now = ctx["services"].clock.now()
    for day in payload.days:
        fields = day.model_dump(include=set(SYNC_FIELDS))
        upsert_health_day(ctx["db"], ctx["user_id"], day.day, fields, now)
    logger.info("Synced %s day(s) of health data for %s", len(payload.days), ctx["user_id"])
    return HealthSyncOut(message="Health data synced", synced=len(payload.days))
