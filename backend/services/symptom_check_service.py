"""
Symptom check service.

Orchestrates the intake pipeline behind the two user-facing steps:

- start_check: emergency triage, then AI-generated clarifying questions
- analyze: catalog matching, AI analysis, normalization

Every anticipated failure (completion service down or returning garbage,
catalog unavailable, audit log write failing) resolves to a well-formed,
disclaimer-bearing response.
"""

from collections.abc import Sequence

from openai import OpenAIError

from config.config import Settings, get_settings
from config.constants import EMERGENCY_KEYWORDS, EMERGENCY_MESSAGE, HISTORY_LIMIT
from config.logging_config import get_logger
from database.database import get_database
from models.models import (
    AnalysisResult,
    ClarificationAnswer,
    MedicalCondition,
    QueryLogEntry,
    StartCheckResult,
    UsageStats,
)
from services.condition_catalog import (
    ArangoConditionCatalog,
    ConditionCatalog,
    InMemoryConditionCatalog,
)
from services.condition_matcher import ConditionMatcher
from services.emergency_detector import detect_emergency, matched_keywords
from services.errors import SymptomCheckerError, UpstreamServiceError
from services.llm_gateway import LLMGateway
from services.prompt_builder import build_analysis_prompt, build_question_prompt
from services.query_log import ArangoQueryLog, InMemoryQueryLog, QueryLog
from services.response_normalizer import normalize_analysis, normalize_questions
from services.seed_data import load_seed_conditions, seed_catalog

logger = get_logger(__name__)

# Failures of the completion step that degrade to fallback values
COMPLETION_FAILURES = (OpenAIError, UpstreamServiceError, TimeoutError)


class SymptomCheckService:
    """
    Entry point for the symptom-check pipeline.

    Stateless between calls: the catalog is read-only after seeding and the
    query log is append-only, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        catalog: ConditionCatalog,
        query_log: QueryLog,
        gateway: LLMGateway,
        settings: Settings | None = None,
        emergency_keywords: Sequence[str] = EMERGENCY_KEYWORDS,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.query_log = query_log
        self.gateway = gateway
        self.matcher = ConditionMatcher(catalog)
        self.emergency_keywords = tuple(emergency_keywords)

    async def start_check(self, symptom: str) -> StartCheckResult:
        """
        Triage a symptom and, if it is not an emergency, ask clarifying questions.

        Emergencies return immediately without calling the completion service.
        """
        if detect_emergency(symptom, self.emergency_keywords):
            logger.warning(
                "Emergency symptoms detected",
                keywords=matched_keywords(symptom, self.emergency_keywords),
            )
            await self._record(QueryLogEntry(symptom=symptom.lower(), is_emergency=True))
            return StartCheckResult(is_emergency=True, message=EMERGENCY_MESSAGE)

        raw = await self._complete(
            build_question_prompt(symptom),
            self.settings.llm_max_tokens_questions,
            step="questions",
        )
        questions = normalize_questions(raw)

        logger.info("Questions generated", count=len(questions), fallback=raw is None)
        return StartCheckResult(is_emergency=False, questions=questions)

    async def analyze(
        self,
        context_text: str,
        clarification_answers: Sequence[ClarificationAnswer] = (),
    ) -> AnalysisResult:
        """
        Analyze the full symptom context against the knowledge base.

        Args:
            context_text: Symptom description plus clarification answers.
            clarification_answers: Structured Q/A pairs, recorded for audit.

        Returns:
            A normalized AnalysisResult (the fallback result on failure).
        """
        candidates = await self.matcher.match(context_text)

        raw = await self._complete(
            build_analysis_prompt(context_text, candidates),
            self.settings.llm_max_tokens_analysis,
            step="analysis",
        )

        allowed_names = None
        if self.settings.restrict_to_matched_conditions:
            allowed_names = [c.condition.name for c in candidates]
        analysis = normalize_analysis(raw, allowed_names=allowed_names)

        logger.info(
            "Analysis completed",
            candidates=len(candidates),
            conditions_found=len(analysis.potential_conditions),
            urgency=analysis.urgency_level.value,
            fallback=raw is None,
        )

        await self._record(
            QueryLogEntry(
                symptom=context_text,
                clarification_answers=list(clarification_answers),
                analysis_result=analysis,
                is_emergency=detect_emergency(context_text, self.emergency_keywords),
            )
        )
        return analysis

    async def list_conditions(self) -> list[MedicalCondition]:
        """All catalog conditions sorted by name."""
        conditions = await self.catalog.find_all()
        return sorted(conditions, key=lambda c: c.name)

    async def recent_history(self, limit: int = HISTORY_LIMIT) -> list[QueryLogEntry]:
        """Most recent query log entries, newest first."""
        return await self.query_log.recent(limit)

    async def stats(self) -> UsageStats:
        """Aggregate counters over the query log and catalog."""
        return UsageStats(
            total_queries=await self.query_log.count(),
            emergency_queries=await self.query_log.count(is_emergency=True),
            conditions_count=await self.catalog.count(),
        )

    async def _complete(self, prompt: str, max_tokens: int, step: str) -> str | None:
        """Call the gateway; None means the call failed and a fallback applies."""
        try:
            return await self.gateway.complete(prompt, max_tokens)
        except COMPLETION_FAILURES as e:
            logger.error(
                "Completion failed, using fallback",
                step=step,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def _record(self, entry: QueryLogEntry) -> None:
        """
        Write an audit record.

        The write is awaited so the entry is durable before the response is
        sent, but a failing sink never fails the request.
        """
        try:
            await self.query_log.append(entry)
        except SymptomCheckerError as e:
            logger.error("Failed to record query", error=str(e), is_emergency=entry.is_emergency)


async def create_symptom_check_service(
    settings: Settings | None = None,
    gateway: LLMGateway | None = None,
) -> SymptomCheckService:
    """
    Build the service for the configured storage backend and seed the catalog.

    Args:
        settings: Application settings. Uses default if not provided.
        gateway: Completion gateway override (tests).
    """
    settings = settings or get_settings()

    catalog: ConditionCatalog
    query_log: QueryLog
    if settings.storage_backend == "arango":
        db = get_database(settings)
        catalog = ArangoConditionCatalog(db)
        query_log = ArangoQueryLog(db)
    else:
        catalog = InMemoryConditionCatalog()
        query_log = InMemoryQueryLog()

    await seed_catalog(catalog, load_seed_conditions(settings.catalog_seed_path))

    if not settings.llm_api_key and gateway is None:
        logger.warning("Completion service API key not configured, AI steps will use fallbacks")

    return SymptomCheckService(
        catalog=catalog,
        query_log=query_log,
        gateway=gateway or LLMGateway(settings),
        settings=settings,
    )


# Singleton instance, set during application startup
_symptom_check_service: SymptomCheckService | None = None


def set_symptom_check_service(service: SymptomCheckService | None) -> None:
    """Install (or clear) the process-wide service instance."""
    global _symptom_check_service
    _symptom_check_service = service


def get_symptom_check_service() -> SymptomCheckService:
    """Get the symptom check service singleton."""
    if _symptom_check_service is None:
        raise RuntimeError("Symptom check service is not initialized")
    return _symptom_check_service
