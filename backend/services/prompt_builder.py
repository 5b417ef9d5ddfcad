"""
Prompt templates for the completion service.

Both builders are pure: same input, same prompt, no I/O.
"""

from collections.abc import Sequence

from config.constants import NO_MATCHING_CONDITIONS, QUESTION_COUNT
from models.models import MatchCandidate

QUESTION_PROMPT = """You are a medical assistant. A patient reports: "{symptom}"

Generate {count} essential clarifying questions to better understand their condition.
Focus on: duration, severity, associated symptoms, and relevant history.

Respond with ONLY valid JSON (no markdown, no code fences, no explanations):
{{"questions": ["question 1", "question 2", "question 3"]}}"""

ANALYSIS_PROMPT = """You are a medical AI assistant. Analyze the patient's symptoms against trusted medical information.

[PATIENT SYMPTOMS]
{context}

[MEDICAL KNOWLEDGE BASE]
{conditions}

Based ONLY on the conditions above, provide analysis in this EXACT JSON format (no markdown):
{{
  "potentialConditions": [
    {{
      "conditionName": "exact name from knowledge base",
      "matchPercentage": 85,
      "reasoning": "why this matches the symptoms",
      "recommendations": ["recommendation 1", "recommendation 2"],
      "source": "source from knowledge base"
    }}
  ],
  "summary": "brief summary and next steps",
  "urgencyLevel": "low"
}}

CRITICAL RULES:
- Only suggest conditions from the knowledge base provided above
- If no knowledge base conditions match, suggest consulting a doctor
- Be honest if you cannot determine a specific condition
- Always emphasize consulting a healthcare professional
- urgencyLevel must be exactly one of: low, medium, high
- Respond with PURE JSON only - no markdown, no code blocks, start with {{ and end with }}"""


def build_question_prompt(symptom: str) -> str:
    """Prompt asking for three clarifying questions about a symptom."""
    return QUESTION_PROMPT.format(symptom=symptom, count=QUESTION_COUNT)


def format_candidate(index: int, candidate: MatchCandidate) -> str:
    """Render one knowledge-base entry as a labeled block."""
    condition = candidate.condition
    return "\n".join([
        f"[Condition {index}]",
        f"Name: {condition.name}",
        f"Symptoms: {', '.join(condition.symptoms)}",
        f"Description: {condition.description}",
        f"Source: {condition.source}",
        f"Severity: {condition.severity.value}",
    ])


def build_analysis_prompt(context_text: str, candidates: Sequence[MatchCandidate]) -> str:
    """
    Prompt asking for a JSON analysis grounded in the given candidates.

    With no candidates the knowledge-base section carries an explicit
    "no matching conditions" marker instead of an empty block.
    """
    conditions = "\n\n".join(
        format_candidate(idx, candidate) for idx, candidate in enumerate(candidates, start=1)
    )
    return ANALYSIS_PROMPT.format(
        context=context_text,
        conditions=conditions or NO_MATCHING_CONDITIONS,
    )
