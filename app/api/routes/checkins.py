from fastapi import APIRouter, Depends, Query
from app.api.deps import Authed
from app.schemas.checkin import CheckInCreate, CheckInOut, CheckInStatusOut, CheckInSubmitOut, ResetTimerOut

router = APIRouter(prefix="/check-in", tags=["check-in"])

@router.post("", response_model=CheckInSubmitOut, status_code=201)
async def submit(payload: CheckInCreate, ctx=Depends(Authed)):
    data = payload.model_dump()
    ci = await ctx["services"].cadence.submit(
        ctx["db"], ctx["user_id"], data["mood"], data["activities"], data["notes"],
    )
    return CheckInSubmitOut(message="Check-in submitted successfully", check_in=CheckInOut.from_model(ci))

@router.get("/status", response_model=CheckInStatusOut)
async def status(ctx=Depends(Authed)):
    st = await ctx["services"].cadence.status(ctx["db"], ctx["user_id"])
    return CheckInStatusOut(can_check_in=st.can_check_in, next_check_in_time=st.next_check_in_time)

@router.post("/reset-timer", response_model=ResetTimerOut)
async def reset_timer(ctx=Depends(Authed)):
    return await ctx["services"].cadence.reset_timer(ctx["db"], ctx["user_id"])

@router.get("/recent", response_model=list[CheckInOut])
async def recent(days: int = Query(7, ge=1, le=90), ctx=Depends(Authed)):
    rows = ctx["services"].cadence.recent(ctx["db"], ctx["user_id"], days)
    return [CheckInOut.from_model(ci) for ci in rows]
