"""
Tests for standard and recency-weighted assessments.
"""
import pytest
from datetime import timedelta
from app.core.errors import AnalysisFailedError, InsufficientDataError
from app.repositories import assessment_repo
from app.services.analysis import RecencyAnalyzer
from app.services.baseline import BaselineBuilder
from app.services.escalation import EscalationPolicy, SupportEscalationEngine
from conftest import StubClassifier


def build_analyzer(container, classifier):
    baselines = BaselineBuilder(container.clock, classifier, classifier_timeout=1)
    return RecencyAnalyzer(container.clock, classifier, baselines, container.escalation,
                           recent_days=3, standard_days=14, classifier_timeout=1)


class TestAnalyzeRecent:
    """Test RecencyAnalyzer.analyze_recent."""

    async def test_no_data(self, db_session, container, test_user_id):
        """An empty window cannot be assessed."""
        with pytest.raises(InsufficientDataError):
            await container.analyzer.analyze_recent(db_session, test_user_id)

    async def test_without_baseline(self, db_session, factory, container, classifier, clock, test_user_id):
        """Without a baseline the analysis still runs and the comparison is empty."""
        factory.checkin(test_user_id, clock.now() - timedelta(hours=5), score=3)

        result = await container.analyzer.analyze_recent(db_session, test_user_id)

        assert result.baseline_comparison is None
        a = result.assessment
        assert a.mental_health_status == "stable"
        assert a.analysis_metadata["analysisType"] == "recent"
        assert a.analysis_metadata["baselineId"] is None
        assert a.analysis_metadata["window"]["days"] == 3
        assert a.analysis_metadata["window"]["weighted"] is True
        assert a.reasoning_data["sleepQuality"] == "poor"
        window, baseline = classifier.calls[0]
        assert window.weighted is True
        assert baseline is None

    async def test_with_baseline(self, db_session, factory, container, classifier, clock, test_user_id):
        """An active baseline is passed to the classifier and compared against."""
        factory.checkin(test_user_id, clock.now() - timedelta(days=10), score=4)
        profile = await container.baselines.establish(db_session, test_user_id)
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=2)

        result = await container.analyzer.analyze_recent(db_session, test_user_id)

        assert result.assessment.analysis_metadata["baselineId"] == str(profile.id)
        assert result.baseline_comparison["moodChange"] == "Mood decreased by 50% compared to baseline"
        assert result.assessment.analysis_metadata["baselineComparison"] == result.baseline_comparison
        assert classifier.calls[-1][1]["averageMoodScore"] == 4.0

    async def test_confidence_clamped(self, db_session, factory, container, clock, test_user_id):
        """Stored confidence is always inside [0, 1]."""
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=3)
        analyzer = build_analyzer(container, StubClassifier(confidence=1.8))
        result = await analyzer.analyze_recent(db_session, test_user_id)
        assert result.assessment.confidence_score == 1.0

    async def test_classifier_failure_not_retried(self, db_session, factory, container, clock, test_user_id):
        """A classifier error surfaces once and stores nothing."""
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=3)
        failing = StubClassifier(error=RuntimeError("model down"))
        analyzer = build_analyzer(container, failing)

        with pytest.raises(AnalysisFailedError):
            await analyzer.analyze_recent(db_session, test_user_id)
        assert len(failing.calls) == 1
        assert assessment_repo.list_assessments(db_session, test_user_id) == []

    async def test_needs_support_opens_request(self, db_session, factory, container, clock,
                                               test_user_id, another_user_id):
        """A needs-support assessment is handed to escalation."""
        factory.user("me", test_user_id)
        factory.user("buddy", another_user_id)
        factory.buddies(test_user_id, another_user_id)
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=1)
        analyzer = build_analyzer(container, StubClassifier(status="critical", needs_support=True))

        result = await analyzer.analyze_recent(db_session, test_user_id)

        assert result.transition is not None
        assert result.transition.current == "buddyRequested"
        assert result.assessment.support_request_status == "buddyRequested"


class TestAssessStandard:
    """Test RecencyAnalyzer.assess_standard."""

    async def test_standard_window(self, db_session, factory, container, classifier, clock, test_user_id):
        """Standard assessments use the longer unweighted window and skip the baseline."""
        factory.checkin(test_user_id, clock.now() - timedelta(days=10), score=3)

        result = await container.analyzer.assess_standard(db_session, test_user_id)

        meta = result.assessment.analysis_metadata
        assert meta["analysisType"] == "standard"
        assert meta["window"] == {
            "days": 14,
            "start": (clock.now() - timedelta(days=14)).isoformat(),
            "end": clock.now().isoformat(),
            "weighted": False,
        }
        assert classifier.calls[0][0].weighted is False
        assert result.baseline_comparison is None

    async def test_history_filters_by_type(self, db_session, factory, container, clock, test_user_id):
        """History and latest can be narrowed to one analysis type."""
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=3)
        await container.analyzer.assess_standard(db_session, test_user_id)
        clock.advance(minutes=1)
        recent = await container.analyzer.analyze_recent(db_session, test_user_id)

        assert len(container.analyzer.history(db_session, test_user_id)) == 2
        only_standard = container.analyzer.history(db_session, test_user_id, analysis_type="standard")
        assert [a.analysis_metadata["analysisType"] for a in only_standard] == ["standard"]
        assert container.analyzer.latest(db_session, test_user_id).id == recent.assessment.id


class TestStatsAndClear:
    """Test stats, analyzed data and admin clear."""

    async def test_stats(self, db_session, factory, container, clock, test_user_id):
        """Stats count statuses, types and reasoning labels."""
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=3)
        await container.analyzer.assess_standard(db_session, test_user_id)
        clock.advance(minutes=1)
        await container.analyzer.analyze_recent(db_session, test_user_id)

        stats = container.analyzer.stats(db_session, test_user_id, 30)

        assert stats["totalAssessments"] == 2
        assert stats["statusDistribution"]["stable"] == 2
        assert stats["analysisTypeDistribution"] == {"standard": 1, "recent": 1}
        assert stats["sleepQualityDistribution"]["poor"] == 2
        assert stats["averageConfidence"] == 0.8
        assert stats["averageMood"] == 2.0
        assert stats["baseline"] is None
        assert len(stats["trends"]) == 2

    async def test_recent_analyzed_data(self, db_session, factory, container, clock, test_user_id):
        """The rows behind the latest recent assessment can be read back."""
        assert container.analyzer.recent_analyzed_data(db_session, test_user_id) is None
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=3)
        await container.analyzer.analyze_recent(db_session, test_user_id)

        window = container.analyzer.recent_analyzed_data(db_session, test_user_id)
        assert window.days == 3
        assert len(window.checkins) == 1

    async def test_clear(self, db_session, factory, container, clock, test_user_id):
        """Clearing removes assessments and optionally baselines."""
        factory.checkin(test_user_id, clock.now() - timedelta(hours=1), score=3)
        await container.baselines.establish(db_session, test_user_id)
        await container.analyzer.assess_standard(db_session, test_user_id)

        assert container.analyzer.clear(db_session, test_user_id) == {"deletedAssessments": 1, "deletedBaselines": 0}
        assert container.analyzer.clear(db_session, test_user_id, include_baselines=True) == {
            "deletedAssessments": 0, "deletedBaselines": 1,
        }
