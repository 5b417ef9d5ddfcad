"""
Fixed data shared across the symptom-check pipeline.

Everything here is immutable and loaded once at import time. Components take
these values as constructor arguments so tests can substitute their own.
"""

EMERGENCY_KEYWORDS: tuple[str, ...] = (
    "chest pain", "can't breathe", "cannot breathe", "difficulty breathing",
    "severe chest pain", "crushing chest pain",
    "suicidal", "suicide", "kill myself", "end my life",
    "severe bleeding", "heavy bleeding", "bleeding won't stop",
    "slurred speech", "can't speak clearly", "face drooping",
    "numbness", "sudden numbness", "paralysis",
    "loss of vision", "sudden blindness", "can't see",
    "unconscious", "fainting", "passed out", "losing consciousness",
    "seizure", "convulsions", "shaking uncontrollably",
    "stroke", "heart attack", "cardiac arrest",
    "severe abdominal pain", "stabbing stomach pain",
    "coughing blood", "vomiting blood", "blood in stool",
    "severe head injury", "head trauma", "skull fracture",
    "choking", "can't swallow", "airway blocked",
    "anaphylaxis", "severe allergic reaction", "throat swelling",
    "overdose", "poisoning", "toxic ingestion",
)

EMERGENCY_MESSAGE = "Emergency symptoms detected. Seek immediate medical attention."

DISCLAIMER = (
    "⚠️ IMPORTANT: This is educational information only, not medical advice. "
    "Always consult a qualified healthcare professional for proper diagnosis and treatment."
)

FALLBACK_QUESTIONS: tuple[str, str, str] = (
    "How long have you been experiencing this symptom?",
    "On a scale of 1-10, how severe is it?",
    "Do you have any other symptoms along with this?",
)

FALLBACK_SUMMARY = (
    "Unable to complete analysis due to a technical issue. Please consult a "
    "healthcare professional for proper evaluation of your symptoms."
)

NO_MATCHING_CONDITIONS = "No matching conditions found in database."

# Primary relevance search cap
MAX_MATCHED_CONDITIONS = 5

# Fallback keyword heuristic only considers tokens longer than this
MIN_KEYWORD_LENGTH = 3

QUESTION_COUNT = 3

HISTORY_LIMIT = 50
