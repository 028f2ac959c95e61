from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import InsufficientDataError
from app.db.models import MentalHealthAssessment
from app.repositories import assessment_repo, baseline_repo
from app.services import metrics
from app.services.baseline import BaselineBuilder, load_window
from app.services.classifier import Classifier, classify_bounded
from app.services.clock import Clock
from app.services.escalation import SupportEscalationEngine, Transition
from app.services.metrics import SignalWindow
from app.utils.time import days_ago, ensure_aware

logger = logging.getLogger(__name__)

STANDARD = "standard"
RECENT = "recent"


@dataclass(slots=True)
class AnalysisResult:
    assessment: MentalHealthAssessment
    baseline_comparison: Optional[dict] = None
    transition: Optional[Transition] = None


class RecencyAnalyzer:
    """
    Runs the classifier over a standard or a short, recency-weighted window,
    stores the assessment and hands it to the escalation engine.
    """

    def __init__(self, clock: Clock, classifier: Classifier, baselines: BaselineBuilder,
                 escalation: SupportEscalationEngine, *, recent_days: int = 3, standard_days: int = 14,
                 classifier_timeout: float | None = None):
        self.clock = clock
        self.classifier = classifier
        self.baselines = baselines
        self.escalation = escalation
        self.recent_days = recent_days
        self.standard_days = standard_days
        self.classifier_timeout = classifier_timeout

    async def analyze_recent(self, db: Session, user_id: UUID) -> AnalysisResult:
        return await self._run(db, user_id, analysis_type=RECENT, days=self.recent_days, weighted=True)

    async def assess_standard(self, db: Session, user_id: UUID) -> AnalysisResult:
        return await self._run(db, user_id, analysis_type=STANDARD, days=self.standard_days, weighted=False)

    async def _run(self, db: Session, user_id: UUID, *, analysis_type: str, days: int,
                   weighted: bool) -> AnalysisResult:
        now = self.clock.now()
        window = load_window(db, user_id, end=now, days=days, weighted=weighted)
        if window.is_empty:
            raise InsufficientDataError(f"No check-ins or health data in the last {days} days")

        baseline = self.baselines.active(db, user_id) if analysis_type == RECENT else None
        averages = baseline.averaged_metrics if baseline else None

        result = await classify_bounded(self.classifier, window, averages, timeout=self.classifier_timeout)
        reasoning = dict(result.reasoning)
        reasoning["significantChanges"] = result.significant_changes
        comparison = metrics.baseline_comparison(reasoning, averages) if averages else None

        assessment = assessment_repo.create_assessment(
            db,
            user_id,
            timestamp=now,
            status=result.status,
            confidence_score=result.confidence,
            needs_support=result.needs_support,
            reasoning_data=reasoning,
            analysis_metadata={
                "analysisType": analysis_type,
                "window": {
                    "days": days,
                    "start": window.start.isoformat(),
                    "end": window.end.isoformat(),
                    "weighted": weighted,
                },
                "baselineId": str(baseline.id) if baseline else None,
                "baselineComparison": comparison,
                "model": result.model,
            },
        )
        logger.info("%s assessment %s for %s: %s (%.2f, needs support: %s)",
                    analysis_type, assessment.id, user_id, result.status, result.confidence, result.needs_support)

        transition = await self.escalation.process(db, assessment)
        return AnalysisResult(assessment=assessment, baseline_comparison=comparison, transition=transition)

    def latest(self, db: Session, user_id: UUID, analysis_type: str | None = None) -> Optional[MentalHealthAssessment]:
        return assessment_repo.get_latest_assessment(db, user_id, analysis_type)

    def history(self, db: Session, user_id: UUID, limit: int = 10,
                analysis_type: str | None = None) -> list[MentalHealthAssessment]:
        return assessment_repo.list_assessments(db, user_id, limit=limit, analysis_type=analysis_type)

    def recent_analyzed_data(self, db: Session, user_id: UUID) -> Optional[SignalWindow]:
        """
        The rows behind the latest recent-mode assessment, or None when there is none.
        """
        a = self.latest(db, user_id, RECENT)
        if a is None:
            return None
        window = (a.analysis_metadata or {}).get("window") or {}
        return load_window(db, user_id, end=ensure_aware(a.timestamp), days=window.get("days", self.recent_days),
                           weighted=True)

    def stats(self, db: Session, user_id: UUID, days: int = 30) -> dict:
        now = self.clock.now()
        start = days_ago(days, now=now)
        rows = assessment_repo.list_assessments_since(db, user_id, start)

        status_counts = {"stable": 0, "declining": 0, "critical": 0}
        sleep_counts = {"poor": 0, "fair": 0, "good": 0}
        activity_counts = {"low": 0, "moderate": 0, "high": 0}
        type_counts = {STANDARD: 0, RECENT: 0}
        moods: list[float] = []
        for a in rows:
            reasoning = a.reasoning_data or {}
            status_counts[a.mental_health_status] = status_counts.get(a.mental_health_status, 0) + 1
            if reasoning.get("sleepQuality") in sleep_counts:
                sleep_counts[reasoning["sleepQuality"]] += 1
            if reasoning.get("activityLevel") in activity_counts:
                activity_counts[reasoning["activityLevel"]] += 1
            kind = (a.analysis_metadata or {}).get("analysisType", STANDARD)
            type_counts[kind] = type_counts.get(kind, 0) + 1
            if reasoning.get("checkInMood"):
                moods.append(reasoning["checkInMood"])

        baseline = baseline_repo.get_active_baseline(db, user_id)
        return {
            "totalAssessments": len(rows),
            "statusDistribution": status_counts,
            "sleepQualityDistribution": sleep_counts,
            "activityLevelDistribution": activity_counts,
            "analysisTypeDistribution": type_counts,
            "averageConfidence": round(sum(a.confidence_score for a in rows) / len(rows), 3) if rows else 0,
            "averageMood": round(sum(moods) / len(moods), 2) if moods else 0,
            "supportRequests": sum(1 for a in rows if a.support_request_status != "none"),
            "trends": [
                {
                    "date": ensure_aware(a.timestamp).isoformat(),
                    "status": a.mental_health_status,
                    "confidence": a.confidence_score,
                    "mood": (a.reasoning_data or {}).get("checkInMood"),
                    "analysisType": (a.analysis_metadata or {}).get("analysisType", STANDARD),
                }
                for a in rows[-10:]
            ],
            "baseline": {
                "establishedAt": ensure_aware(baseline.established_at).isoformat(),
                "sleepQuality": baseline.averaged_metrics.get("sleepQuality"),
                "activityLevel": baseline.averaged_metrics.get("activityLevel"),
                "averageMoodScore": baseline.averaged_metrics.get("averageMoodScore"),
                "confidenceScore": baseline.confidence_score,
            } if baseline else None,
            "period": {"days": days, "startDate": start.isoformat(), "endDate": now.isoformat()},
        }

    def clear(self, db: Session, user_id: UUID, include_baselines: bool = False) -> dict:
        deleted = assessment_repo.delete_assessments(db, user_id)
        deleted_baselines = baseline_repo.delete_baselines(db, user_id) if include_baselines else 0
        logger.warning("Cleared %s assessment(s) and %s baseline(s) for %s", deleted, deleted_baselines, user_id)
        return {"deletedAssessments": deleted, "deletedBaselines": deleted_baselines}
