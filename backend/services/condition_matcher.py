"""
Match free-text symptom context against the condition catalog.

Two tiers:
1. Relevance search over name, symptoms and description (top 5).
2. If that finds nothing, a keyword-overlap scan of the whole catalog.
   The scan is unranked and uncapped.
"""

from config.constants import MAX_MATCHED_CONDITIONS, MIN_KEYWORD_LENGTH
from config.logging_config import get_logger
from models.models import MatchCandidate, MedicalCondition
from services.condition_catalog import ConditionCatalog
from services.errors import CatalogUnavailableError

logger = get_logger(__name__)


def extract_keywords(text: str) -> list[str]:
    """Whitespace tokens of the lowercased text longer than three characters."""
    return [word for word in text.lower().split() if len(word) > MIN_KEYWORD_LENGTH]


def overlaps(condition: MedicalCondition, keywords: list[str]) -> bool:
    """True if any symptom phrase and keyword contain one another."""
    return any(
        keyword in symptom or symptom in keyword
        for symptom in condition.symptoms
        for keyword in keywords
    )


class ConditionMatcher:
    """Find catalog conditions relevant to a symptom context."""

    def __init__(self, catalog: ConditionCatalog, limit: int = MAX_MATCHED_CONDITIONS):
        self.catalog = catalog
        self.limit = limit

    async def match(self, context_text: str) -> list[MatchCandidate]:
        """
        Return matching conditions for the context.

        An empty list is a normal result. Catalog outages are logged and
        treated as "no matches" so analysis can still proceed.
        """
        query = context_text.lower()

        try:
            candidates = await self.catalog.find_by_relevance(query, self.limit)
        except CatalogUnavailableError as e:
            logger.warning("Relevance search unavailable, using keyword fallback", error=str(e))
            candidates = []

        if candidates:
            logger.info("Conditions matched", strategy="relevance", count=len(candidates))
            return candidates[: self.limit]

        try:
            candidates = await self._keyword_fallback(query)
        except CatalogUnavailableError as e:
            logger.error("Catalog unavailable, continuing without conditions", error=str(e))
            return []

        logger.info("Conditions matched", strategy="keyword", count=len(candidates))
        return candidates

    async def _keyword_fallback(self, query: str) -> list[MatchCandidate]:
        keywords = extract_keywords(query)
        if not keywords:
            return []

        conditions = await self.catalog.find_all()
        return [
            MatchCandidate(condition=condition)
            for condition in conditions
            if overlaps(condition, keywords)
        ]
