"""
Turn untrusted completion text into validated results.

The completion service is told to answer with bare JSON but frequently wraps
it in code fences or prose. Everything here is total: bad input produces a
fixed fallback value, never an exception.
"""

import json
import re
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from config.constants import DISCLAIMER, FALLBACK_QUESTIONS, FALLBACK_SUMMARY, QUESTION_COUNT
from config.logging_config import get_logger
from models.models import AnalysisResult, PotentialCondition, UrgencyLevel

logger = get_logger(__name__)

_LEADING_FENCE = re.compile(r"^```[\w-]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

ALLOWED_URGENCY = {level.value for level in UrgencyLevel}


def parse_json_response(raw: str | None) -> Any | None:
    """
    Parse JSON that may be wrapped in code fences or surrounding prose.

    Strips a leading ```/```json fence and a trailing fence, then tries the
    whole text; failing that, the span from the first ``{`` to the last ``}``.

    Returns:
        The decoded value, or None if nothing parses.
    """
    if not raw or not isinstance(raw, str):
        return None

    cleaned = _LEADING_FENCE.sub("", raw.strip())
    cleaned = _TRAILING_FENCE.sub("", cleaned).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    match = _JSON_OBJECT.search(cleaned)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    logger.warning("JSON parse failed", content=cleaned[:100])
    return None


def fallback_questions() -> list[str]:
    """The fixed clarification questions used when generation fails."""
    return list(FALLBACK_QUESTIONS)


def normalize_questions(raw: str | None) -> list[str]:
    """
    Extract exactly three clarifying questions from a completion.

    Missing or malformed output yields the fallback questions. If the model
    returns fewer than three usable questions the rest are filled from the
    fallback set.
    """
    parsed = parse_json_response(raw)
    if not isinstance(parsed, dict) or not isinstance(parsed.get("questions"), list):
        return fallback_questions()

    questions = [
        q.strip() for q in parsed["questions"]
        if isinstance(q, str) and q.strip()
    ][:QUESTION_COUNT]
    if not questions:
        return fallback_questions()

    for filler in FALLBACK_QUESTIONS:
        if len(questions) >= QUESTION_COUNT:
            break
        if filler not in questions:
            questions.append(filler)
    return questions


def fallback_analysis() -> AnalysisResult:
    """The fixed result used when analysis cannot be completed."""
    return AnalysisResult(
        potential_conditions=(),
        summary=FALLBACK_SUMMARY,
        urgency_level=UrgencyLevel.MEDIUM,
        disclaimer=DISCLAIMER,
    )


def _coerce_condition(item: Any) -> PotentialCondition | None:
    """Validate one model-proposed condition, or None if unusable."""
    if not isinstance(item, dict):
        return None

    percentage = item.get("matchPercentage", 0)
    try:
        percentage = min(100.0, max(0.0, float(percentage)))
    except (TypeError, ValueError):
        percentage = 0.0

    recommendations = item.get("recommendations")
    if isinstance(recommendations, str):
        recommendations = [recommendations]
    elif not isinstance(recommendations, list):
        recommendations = []

    try:
        return PotentialCondition(
            condition_name=item.get("conditionName"),
            match_percentage=percentage,
            reasoning=str(item.get("reasoning") or ""),
            recommendations=tuple(str(r) for r in recommendations if r),
            source=str(item.get("source") or ""),
        )
    except ValidationError as e:
        logger.warning("Dropping malformed condition", error=str(e))
        return None


def normalize_analysis(
    raw: str | None,
    allowed_names: Iterable[str] | None = None,
) -> AnalysisResult:
    """
    Build an AnalysisResult from a completion.

    Urgency outside low/medium/high becomes medium and the disclaimer is
    always replaced with the canonical text.

    Args:
        raw: Completion text (None when the call itself failed).
        allowed_names: Candidate names given to the model. When provided,
            conditions not among them are dropped.
    """
    parsed = parse_json_response(raw)
    if not isinstance(parsed, dict):
        return fallback_analysis()

    urgency = parsed.get("urgencyLevel")
    if not isinstance(urgency, str) or urgency not in ALLOWED_URGENCY:
        urgency = UrgencyLevel.MEDIUM.value

    items = parsed.get("potentialConditions")
    if not isinstance(items, list):
        items = []
    conditions = [c for c in map(_coerce_condition, items) if c is not None]

    if allowed_names is not None:
        allowed = {name.strip().lower() for name in allowed_names}
        kept = [c for c in conditions if c.condition_name.strip().lower() in allowed]
        if len(kept) != len(conditions):
            logger.warning(
                "Dropped conditions outside the knowledge base",
                dropped=[c.condition_name for c in conditions if c not in kept],
            )
        conditions = kept

    summary = parsed.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = FALLBACK_SUMMARY

    return AnalysisResult(
        potential_conditions=tuple(conditions),
        summary=summary,
        urgency_level=UrgencyLevel(urgency),
        disclaimer=DISCLAIMER,
    )
