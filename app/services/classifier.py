import asyncio, json, logging, re
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx

from app.core.config import settings
from app.core.errors import AnalysisFailedError
from app.services.metrics import SignalWindow, clamp_confidence, summarize

log = logging.getLogger(__name__)

STATUSES = ("stable", "declining", "critical")

PROMPT_FOOTER = (
  "Based on this data, analyze the user's mental health state. Consider sleep hours and quality,\n"
  "activity level, mood from check-ins, significant changes in patterns and any risk or protective factors.\n"
  "Respond ONLY with JSON in this format:\n"
  "{\"mentalHealthStatus\":\"stable|declining|critical\",\"confidenceScore\":0.XX,"
  "\"reasoningData\":{\"sleepHours\":X.X,\"sleepQuality\":\"poor|fair|good\",\"activityLevel\":\"low|moderate|high\","
  "\"checkInMood\":X.X,\"checkInNotes\":\"...\",\"recentExerciseMinutes\":XXX,\"stepsPerDay\":XXXX,"
  "\"significantChanges\":[\"...\"],\"additionalFactors\":{}},\"needsSupport\":true|false}\n"
  "- stable: no major concerns\n"
  "- declining: concerning patterns that might indicate declining mental health\n"
  "- critical: serious concerns that require immediate attention\n"
  "Only include reasoningData fields you have sufficient information for.\n"
)


@dataclass(slots=True)
class Classification:
    status: str
    confidence: float
    needs_support: bool
    significant_changes: list[str] = field(default_factory=list)
    reasoning: dict = field(default_factory=dict)
    model: str = "heuristic"


class Classifier(Protocol):
    name: str

    async def classify(self, window: SignalWindow, baseline: Optional[dict] = None) -> Classification: ...


class HeuristicClassifier:
    """
    In-process rules over the window summary. Used when no model endpoint is
    configured.
    """
    name = "heuristic"

    async def classify(self, window: SignalWindow, baseline: Optional[dict] = None) -> Classification:
        return self.evaluate(summarize(window), baseline)

    def evaluate(self, reasoning: dict, baseline: Optional[dict] = None) -> Classification:
        mood = reasoning.get("checkInMood")
        sleep = reasoning.get("sleepHours")
        changes = reasoning.get("significantChanges") or []

        status = "stable"
        if mood is not None and mood < 2:
            status = "critical"
        elif sleep is not None and sleep < 5:
            status = "declining"
        elif len(changes) > 2:
            status = "declining"
        elif baseline and mood is not None and baseline.get("averageMoodScore"):
            # A sharp drop against the personal norm counts as decline
            if baseline["averageMoodScore"] - mood >= baseline["averageMoodScore"] * 0.3:
                status = "declining"

        return Classification(
            status=status,
            confidence=0.7,
            needs_support=status != "stable",
            significant_changes=list(changes),
            reasoning=reasoning,
            model=self.name,
        )


def _extract_json(text: str) -> dict:
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise ValueError("No JSON object in model response")
    return json.loads(match.group(0))


def build_prompt(window: SignalWindow, baseline: Optional[dict] = None) -> str:
    lines = [
        "You are a mental health assessment AI specialized in analyzing health data metrics.",
        f"You have {window.days} days of health and mood data from "
        f"{window.start.date().isoformat()} to {window.end.date().isoformat()}.",
    ]
    if window.weighted:
        lines.append("Weight the most recent days more heavily than older ones.")

    lines.append("\nSleep data:")
    sleep_rows = [h for h in window.health if h.sleep_seconds]
    for h in sleep_rows:
        lines.append(f"- {h.day.isoformat()}: {h.sleep_seconds / 3600:.1f} hours, quality: {h.sleep_quality or 'not recorded'}")
    if not sleep_rows:
        lines.append("No sleep data available.")

    lines.append("\nActivity data:")
    step_rows = [h for h in window.health if (h.total_steps or 0) > 0]
    for h in step_rows:
        line = f"- {h.day.isoformat()}: {h.total_steps} steps"
        if h.exercise_count:
            line += f", {h.exercise_count} exercise sessions ({round((h.exercise_seconds or 0) / 60)} minutes)"
        lines.append(line)
    if not step_rows:
        lines.append("No activity data available.")

    lines.append("\nMood check-ins:")
    for c in window.checkins:
        line = f"- {c.timestamp.date().isoformat()}: Mood score: {c.mood_score}/5 ({c.mood_label})"
        if c.notes:
            line += f', Notes: "{c.notes}"'
        lines.append(line)
    if not window.checkins:
        lines.append("No mood check-ins available.")

    if baseline:
        lines.append("\nPersonal baseline:")
        lines.append(json.dumps(baseline, default=str))

    return "\n".join(lines) + "\n\n" + PROMPT_FOOTER


class OllamaClassifier:
    """
    Calls an Ollama-style /api/generate endpoint. Any transport, status or
    parse failure raises AnalysisFailedError; nothing is retried here.
    """
    name = "ollama"

    def __init__(self, url: str | None = None, model: str | None = None, *,
                 timeout: float | None = None, temperature: float | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.url = url or settings.CLASSIFIER_URL
        self.model = model or settings.CLASSIFIER_MODEL
        self.timeout = timeout if timeout is not None else settings.CLASSIFIER_TIMEOUT_SECONDS
        self.temperature = temperature if temperature is not None else settings.CLASSIFIER_TEMPERATURE
        self._transport = transport

    async def _generate(self, prompt: str) -> str:
        req = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self.temperature, "top_p": 0.9},
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            r = await client.post(self.url, json=req)
            r.raise_for_status()
            data = r.json()
        text = data.get("response") if isinstance(data, dict) else None
        if not text:
            raise ValueError("Invalid response from model")
        return text

    async def classify(self, window: SignalWindow, baseline: Optional[dict] = None) -> Classification:
        pre = summarize(window)
        prompt = build_prompt(window, baseline)
        log.info("Sending %s-day window to %s (%s)", window.days, self.model, self.url)
        try:
            parsed = _extract_json(await self._generate(prompt))
        except httpx.TimeoutException as e:
            log.warning("Classifier timed out after %ss: %s", self.timeout, e)
            raise AnalysisFailedError("Classifier timed out") from e
        except httpx.HTTPStatusError as e:
            log.warning("Classifier HTTP error: %s", e.response.status_code)
            raise AnalysisFailedError(f"Classifier returned HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            log.warning("Classifier unreachable: %s", e)
            raise AnalysisFailedError("Classifier unreachable") from e
        except (json.JSONDecodeError, ValueError) as e:
            log.warning("Classifier response parsing error: %s", e)
            raise AnalysisFailedError("Classifier returned an unreadable answer") from e

        status = parsed.get("mentalHealthStatus")
        if status not in STATUSES:
            raise AnalysisFailedError(f"Classifier returned unknown status {status!r}")

        # Model fields win; computed metrics fill the gaps
        model_reasoning = parsed.get("reasoningData") or {}
        reasoning = dict(pre)
        for key, value in model_reasoning.items():
            if key == "additionalFactors":
                reasoning["additionalFactors"] = {**pre.get("additionalFactors", {}), **(value or {})}
            elif value not in (None, "", []):
                reasoning[key] = value

        return Classification(
            status=status,
            confidence=clamp_confidence(parsed.get("confidenceScore")),
            needs_support=bool(parsed.get("needsSupport", status != "stable")),
            significant_changes=list(reasoning.get("significantChanges") or []),
            reasoning=reasoning,
            model=self.model,
        )


def build_classifier(provider: str | None = None) -> Classifier:
    provider = (provider or settings.CLASSIFIER_PROVIDER).lower()
    if provider == "ollama":
        return OllamaClassifier()
    if provider != "heuristic":
        log.warning("Unknown classifier provider %r, using heuristic", provider)
    return HeuristicClassifier()


async def classify_bounded(classifier: Classifier, window: SignalWindow, baseline: Optional[dict] = None,
                           *, timeout: float | None = None) -> Classification:
    """
    Run any classifier under a hard timeout. Every failure surfaces as
    AnalysisFailedError and is not retried.
    """
    timeout = timeout if timeout is not None else settings.CLASSIFIER_TIMEOUT_SECONDS
    try:
        result = await asyncio.wait_for(classifier.classify(window, baseline), timeout)
    except AnalysisFailedError:
        raise
    except asyncio.TimeoutError as e:
        log.warning("Classifier %s exceeded %ss", getattr(classifier, "name", classifier), timeout)
        raise AnalysisFailedError("Classifier timed out") from e
    except Exception as e:
        log.error("Classifier %s failed: %s", getattr(classifier, "name", classifier), e)
        raise AnalysisFailedError(f"Classifier error: {e}") from e
    if result.status not in STATUSES:
        raise AnalysisFailedError(f"Classifier returned unknown status {result.status!r}")
    result.confidence = clamp_confidence(result.confidence)
    return result
