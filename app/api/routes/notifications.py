from fastapi import APIRouter, Depends, Query
from uuid import UUID
from app.api.deps import Authed
from app.schemas.notification import (
    MarkAllReadOut, NotificationOut, RegisterDeviceIn, RegisterDeviceOut, UnregisterDeviceIn,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.post("/register-device", response_model=RegisterDeviceOut)
async def register_device(payload: RegisterDeviceIn, ctx=Depends(Authed)):
    ok = await ctx["services"].deliverer.register_device(
        ctx["db"], ctx["user_id"], payload.token, payload.platform, payload.device_id,
    )
    message = "Device registered successfully" if ok else "Device saved, push registration will be retried later"
    return RegisterDeviceOut(registered=ok, message=message)

@router.post("/unregister-device", response_model=RegisterDeviceOut)
async def unregister_device(payload: UnregisterDeviceIn, ctx=Depends(Authed)):
    removed = ctx["services"].deliverer.unregister_device(ctx["db"], ctx["user_id"], payload.token)
    return RegisterDeviceOut(registered=False, message="Device unregistered" if removed else "Device not found")

@router.get("", response_model=list[NotificationOut])
async def list_notifications(unread_only: bool = Query(False, alias="unreadOnly"),
                             limit: int = Query(50, ge=1, le=200), ctx=Depends(Authed)):
    return ctx["services"].deliverer.list_for_user(ctx["db"], ctx["user_id"], unread_only=unread_only, limit=limit)

@router.post("/read-all", response_model=MarkAllReadOut)
async def read_all(ctx=Depends(Authed)):
    return MarkAllReadOut(updated=ctx["services"].deliverer.mark_all_read(ctx["db"], ctx["user_id"]))

@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(notification_id: UUID, ctx=Depends(Authed)):
    return ctx["services"].deliverer.mark_read(ctx["db"], ctx["user_id"], notification_id)
