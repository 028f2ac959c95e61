"""
Pure metric helpers shared by the baseline builder, the recency analyzer and
the heuristic classifier. Health rows and check-ins are read through their
attributes only, so ORM objects and plain stand-ins both work.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

SLEEP_QUALITY_SCALE = {"poor": 1, "fair": 2, "good": 3}
ACTIVITY_SCALE = {"low": 1, "moderate": 2, "high": 3}
MOOD_CHANGE_THRESHOLD = 0.15


@dataclass(slots=True)
class SignalWindow:
    """
    Check-ins and daily health rows for one user over [start, end], oldest first.
    """
    user_id: Any
    start: datetime
    end: datetime
    days: int
    health: list = field(default_factory=list)
    checkins: list = field(default_factory=list)
    weighted: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.health and not self.checkins

    def sample_days(self) -> int:
        days = {h.day for h in self.health if _has_any_metric(h)}
        days |= {c.timestamp.date() for c in self.checkins}
        return len(days)


def _has_any_metric(h) -> bool:
    return bool(h.sleep_seconds or (h.total_steps or 0) > 0 or h.exercise_count or h.exercise_seconds)


def recency_weights(n: int) -> list[float]:
    """
    Linear weights for `n` samples ordered oldest first: the newest gets 1.0,
    each older sample one step less.
    """
    if n <= 0:
        return []
    return [(i + 1) / n for i in range(n)]


def _weighted_mean(values: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
    if weights is None:
        return sum(values) / len(values)
    total = sum(weights)
    return sum(v * w for v, w in zip(values, weights)) / total


def average_sleep_hours(health: Sequence, weighted: bool = False) -> Optional[float]:
    rows = [h for h in health if h.sleep_seconds]
    if not rows:
        return None
    hours = [h.sleep_seconds / 3600 for h in rows]
    weights = recency_weights(len(rows)) if weighted else None
    return round(_weighted_mean(hours, weights), 1)


def modal_sleep_quality(health: Sequence) -> Optional[str]:
    qualities = [h.sleep_quality for h in health if h.sleep_quality in SLEEP_QUALITY_SCALE]
    if not qualities:
        return None
    # Ties resolve toward the worse quality
    best, best_count = "fair", 0
    for quality in SLEEP_QUALITY_SCALE:
        count = qualities.count(quality)
        if count > best_count:
            best, best_count = quality, count
    return best


def activity_level(health: Sequence) -> Optional[str]:
    rows = [h for h in health if (h.total_steps or 0) > 0 or h.exercise_count]
    if not rows:
        return None
    avg_steps = sum(h.total_steps or 0 for h in rows) / len(rows)
    exercise_minutes = sum(h.exercise_seconds or 0 for h in rows) / 60
    if avg_steps > 10000 or exercise_minutes > 150:
        return "high"
    if avg_steps > 5000 or exercise_minutes > 75:
        return "moderate"
    return "low"


def average_mood(checkins: Sequence, weighted: bool = False) -> Optional[float]:
    if not checkins:
        return None
    scores = [c.mood_score for c in checkins]
    weights = recency_weights(len(scores)) if weighted else None
    return round(_weighted_mean(scores, weights), 1)


def latest_notes(checkins: Sequence) -> Optional[str]:
    for c in sorted(checkins, key=lambda c: c.timestamp, reverse=True):
        if c.notes and c.notes.strip():
            return c.notes
    return None


def exercise_minutes(health: Sequence) -> Optional[int]:
    rows = [h for h in health if h.exercise_count]
    if not rows:
        return None
    return round(sum(h.exercise_seconds or 0 for h in rows) / 60)


def exercise_minutes_per_week(health: Sequence, days: int) -> Optional[int]:
    total = exercise_minutes(health)
    if total is None or days <= 0:
        return None
    return round(total / days * 7)


def average_steps(health: Sequence, weighted: bool = False) -> Optional[int]:
    rows = [h for h in health if (h.total_steps or 0) > 0]
    if not rows:
        return None
    weights = recency_weights(len(rows)) if weighted else None
    return round(_weighted_mean([h.total_steps for h in rows], weights))


def significant_changes(health: Sequence, checkins: Sequence) -> list[str]:
    """
    Compare the newest few samples with the ones just before them.
    Inputs are oldest first.
    """
    changes: list[str] = []
    newest = list(reversed(health))

    if len(newest) >= 7:
        recent = [h for h in newest[:3] if h.sleep_seconds]
        previous = [h for h in newest[3:7] if h.sleep_seconds]
        if recent and previous:
            recent_avg = sum(h.sleep_seconds for h in recent) / len(recent) / 3600
            previous_avg = sum(h.sleep_seconds for h in previous) / len(previous) / 3600
            if abs(recent_avg - previous_avg) > 1.5:
                changes.append(f"Sleep hours changed from {previous_avg:.1f} to {recent_avg:.1f}")

        recent = [h for h in newest[:3] if (h.total_steps or 0) > 0]
        previous = [h for h in newest[3:7] if (h.total_steps or 0) > 0]
        if recent and previous:
            recent_avg = sum(h.total_steps for h in recent) / len(recent)
            previous_avg = sum(h.total_steps for h in previous) / len(previous)
            if abs(recent_avg - previous_avg) / previous_avg > 0.3:
                pct = round((recent_avg - previous_avg) / previous_avg * 100)
                changes.append(f"Step count changed by {pct}%")

    moods = [c.mood_score for c in reversed(checkins)]
    if len(moods) >= 4:
        recent_avg = sum(moods[:2]) / 2
        previous_avg = sum(moods[2:4]) / 2
        if abs(recent_avg - previous_avg) >= 1:
            changes.append(f"Mood score changed from {previous_avg:.1f} to {recent_avg:.1f}")

    return changes


def summarize(window: SignalWindow) -> dict:
    """
    Reasoning data for a window. Keys with no backing samples are omitted.
    """
    health, checkins = window.health, window.checkins
    summary = {
        "sleepHours": average_sleep_hours(health, window.weighted),
        "sleepQuality": modal_sleep_quality(health),
        "activityLevel": activity_level(health),
        "checkInMood": average_mood(checkins, window.weighted),
        "checkInNotes": latest_notes(checkins),
        "recentExerciseMinutes": exercise_minutes(health),
        "stepsPerDay": average_steps(health, window.weighted),
        "significantChanges": significant_changes(health, checkins),
    }
    out = {k: v for k, v in summary.items() if v is not None}
    out["additionalFactors"] = {"dataCompleteness": round(len(health) / max(window.days, 1), 2)}
    return out


def compare_metrics(current: Optional[str], baseline: Optional[str]) -> Optional[str]:
    """
    Compare two sleep-quality or two activity-level labels.
    """
    if not current or not baseline:
        return None
    scale = SLEEP_QUALITY_SCALE if current in SLEEP_QUALITY_SCALE else ACTIVITY_SCALE
    if current not in scale or baseline not in scale:
        return None
    if scale[current] > scale[baseline]:
        return "Improved compared to baseline"
    if scale[current] < scale[baseline]:
        return "Declined compared to baseline"
    return "Consistent with baseline"


def compare_mood(current: Optional[float], baseline: Optional[float]) -> Optional[str]:
    if not current or not baseline:
        return None
    difference = current - baseline
    if abs(difference) < baseline * MOOD_CHANGE_THRESHOLD:
        return "Mood consistent with baseline"
    pct = round(abs(difference) / baseline * 100)
    if difference > 0:
        return f"Mood improved by {pct}% compared to baseline"
    return f"Mood decreased by {pct}% compared to baseline"


def baseline_comparison(reasoning: dict, averaged_metrics: dict) -> dict:
    return {
        "sleepChange": compare_metrics(reasoning.get("sleepQuality"), averaged_metrics.get("sleepQuality")),
        "activityChange": compare_metrics(reasoning.get("activityLevel"), averaged_metrics.get("activityLevel")),
        "moodChange": compare_mood(reasoning.get("checkInMood"), averaged_metrics.get("averageMoodScore")),
    }


def clamp_confidence(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return min(max(score, 0.0), 1.0)
