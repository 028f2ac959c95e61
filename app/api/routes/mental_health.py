from fastapi import APIRouter, Depends, Query
from uuid import UUID
from typing import Optional
from app.api.deps import AdminAuthed, Authed
from app.core.errors import NotFoundError
from app.schemas.checkin import CheckInOut
from app.schemas.mental_health import (
    AnalysisOut, AnalyzedDataOut, AssessmentOut, BaselineOut, ClearAssessmentsOut, HealthDayOut,
    ProvideSupportOut, SubmitterOut, SupportRequestOut, SweepOut,
)

router = APIRouter(prefix="/mental-health", tags=["mental-health"])

def _analysis_out(result, message: str) -> AnalysisOut:
    a = result.assessment
    return AnalysisOut(
        message=message,
        status=a.mental_health_status,
        needs_support=a.needs_support,
        confidence_score=a.confidence_score,
        analysis_type=a.analysis_metadata.get("analysisType"),
        baseline_comparison=result.baseline_comparison,
        support_request_status=a.support_request_status,
        assessment=AssessmentOut.from_model(a),
    )

def _analyzed_data_out(window, analysis_type: str) -> AnalyzedDataOut:
    return AnalyzedDataOut(
        analysis_type=analysis_type,
        period={"startDate": window.start.isoformat(), "endDate": window.end.isoformat(), "totalDays": window.days},
        health_data=[HealthDayOut.model_validate(h) for h in reversed(window.health)],
        check_ins=[CheckInOut.from_model(c) for c in reversed(window.checkins)],
    )

def _support_out(views) -> list[SupportRequestOut]:
    out = []
    for v in views:
        base = AssessmentOut.from_model(v.assessment).model_dump()
        out.append(SupportRequestOut(
            **base,
            user=SubmitterOut(id=v.user_id, username=v.username, display_name=v.display_name),
        ))
    return out

@router.post("/establish-baseline", response_model=BaselineOut, status_code=201)
async def establish_baseline(include_raw_data: bool = Query(False, alias="includeRawData"), ctx=Depends(Authed)):
    profile = await ctx["services"].baselines.establish(ctx["db"], ctx["user_id"])
    out = BaselineOut.model_validate(profile)
    if not include_raw_data:
        out.raw_assessment_data = None
    return out

@router.get("/baseline", response_model=BaselineOut)
async def get_baseline(ctx=Depends(Authed)):
    profile = ctx["services"].baselines.active(ctx["db"], ctx["user_id"])
    if not profile:
        raise NotFoundError("No baseline found")
    return profile

@router.get("/baseline/history", response_model=list[BaselineOut])
async def baseline_history(limit: int = Query(5, ge=1, le=50), ctx=Depends(Authed)):
    return ctx["services"].baselines.history(ctx["db"], ctx["user_id"], limit)

@router.get("/baseline/analyzed-data", response_model=AnalyzedDataOut)
async def baseline_analyzed_data(ctx=Depends(Authed)):
    window = ctx["services"].baselines.analyzed_data(ctx["db"], ctx["user_id"])
    if window is None:
        raise NotFoundError("No baseline found")
    return _analyzed_data_out(window, "baseline")

@router.post("/assess", response_model=AnalysisOut)
async def assess(ctx=Depends(Authed)):
    result = await ctx["services"].analyzer.assess_standard(ctx["db"], ctx["user_id"])
    return _analysis_out(result, "Mental health assessment completed")

@router.post("/analyze-recent", response_model=AnalysisOut)
async def analyze_recent(ctx=Depends(Authed)):
    result = await ctx["services"].analyzer.analyze_recent(ctx["db"], ctx["user_id"])
    return _analysis_out(result, "Recent mental health assessment completed")

@router.get("/assessment", response_model=AssessmentOut)
async def latest_assessment(ctx=Depends(Authed)):
    a = ctx["services"].analyzer.latest(ctx["db"], ctx["user_id"])
    if not a:
        raise NotFoundError("No mental health assessment found")
    return AssessmentOut.from_model(a)

@router.get("/history", response_model=list[AssessmentOut], response_model_exclude_none=True)
async def history(
    limit: int = Query(10, ge=1, le=100),
    analysis_type: Optional[str] = Query(None, alias="analysisType"),
    include_support_details: bool = Query(False, alias="includeSupportDetails"),
    ctx=Depends(Authed),
):
    rows = ctx["services"].analyzer.history(ctx["db"], ctx["user_id"], limit, analysis_type)
    return [AssessmentOut.from_model(a, include_support=include_support_details) for a in rows]

@router.get("/recent/analyzed-data", response_model=AnalyzedDataOut)
async def recent_analyzed_data(ctx=Depends(Authed)):
    window = ctx["services"].analyzer.recent_analyzed_data(ctx["db"], ctx["user_id"])
    if window is None:
        raise NotFoundError("No recent assessment found")
    return _analyzed_data_out(window, "recent")

@router.get("/stats")
async def stats(days: int = Query(30, ge=1, le=365), ctx=Depends(Authed)):
    return ctx["services"].analyzer.stats(ctx["db"], ctx["user_id"], days)

@router.get("/buddy-support-requests", response_model=list[SupportRequestOut])
async def buddy_support_requests(ctx=Depends(Authed)):
    return _support_out(ctx["services"].escalation.list_buddy_support_requests(ctx["db"], ctx["user_id"]))

@router.get("/community-support-requests", response_model=list[SupportRequestOut])
async def community_support_requests(ctx=Depends(Authed)):
    return _support_out(ctx["services"].escalation.list_community_support_requests(ctx["db"], ctx["user_id"]))

@router.get("/global-support-requests", response_model=list[SupportRequestOut])
async def global_support_requests(ctx=Depends(Authed)):
    return _support_out(ctx["services"].escalation.list_global_support_requests(ctx["db"], ctx["user_id"]))

@router.post("/provide-support/{assessment_id}", response_model=ProvideSupportOut)
async def provide_support(assessment_id: UUID, ctx=Depends(Authed)):
    a = await ctx["services"].escalation.provide_support(ctx["db"], assessment_id, ctx["user_id"])
    return ProvideSupportOut(message="Support marked as provided", assessment=AssessmentOut.from_model(a))

@router.post("/admin/clear-assessments", response_model=ClearAssessmentsOut)
async def clear_assessments(include_baselines: bool = Query(False, alias="includeBaselines"),
                            ctx=Depends(AdminAuthed)):
    res = ctx["services"].analyzer.clear(ctx["db"], ctx["user_id"], include_baselines)
    return ClearAssessmentsOut(
        message="Mental health data cleared",
        deleted_assessments=res["deletedAssessments"],
        deleted_baselines=res["deletedBaselines"],
    )

@router.post("/admin/reset-support/{assessment_id}", response_model=AssessmentOut)
async def reset_support(assessment_id: UUID, ctx=Depends(AdminAuthed)):
    return AssessmentOut.from_model(ctx["services"].escalation.reset(ctx["db"], assessment_id))

@router.post("/admin/sweep-support", response_model=SweepOut)
async def sweep_support(ctx=Depends(AdminAuthed)):
    transitions = await ctx["services"].escalation.sweep(ctx["db"])
    return SweepOut(
        widened=len(transitions),
        transitions=[
            {"assessmentId": str(t.assessment_id), "from": t.previous, "to": t.current, "trigger": t.trigger}
            for t in transitions
        ],
    )
