import asyncio
import json

from config.constants import (
    DISCLAIMER,
    EMERGENCY_MESSAGE,
    FALLBACK_QUESTIONS,
    FALLBACK_SUMMARY,
    NO_MATCHING_CONDITIONS,
)
from conftest import timeout_error
from models.models import ClarificationAnswer, UrgencyLevel
from services.errors import QueryLogError
from services.symptom_check_service import create_symptom_check_service

MIGRAINE_ANALYSIS = json.dumps({
    "potentialConditions": [
        {
            "conditionName": "Migraine",
            "matchPercentage": 80,
            "reasoning": "Throbbing headache with light sensitivity",
            "recommendations": ["Rest in a quiet, dark room"],
            "source": "Mayo Clinic & American Migraine Foundation",
        },
        {
            "conditionName": "Cluster Headache",
            "matchPercentage": 40,
            "reasoning": "Not in the knowledge base",
        },
    ],
    "summary": "Symptoms are consistent with migraine.",
    "urgencyLevel": "low",
})


class FailingQueryLog:
    def __init__(self):
        self.attempts = 0

    async def append(self, entry):
        self.attempts += 1
        raise QueryLogError("disk full")

    async def recent(self, limit=50):
        return []

    async def count(self, is_emergency=None):
        return 0


def test_emergency_short_circuits_without_completion(make_service, query_log):
    service, client = make_service('{"questions": ["q1", "q2", "q3"]}')

    result = asyncio.run(service.start_check("Sudden CHEST PAIN radiating to my arm"))

    assert result.is_emergency
    assert result.message == EMERGENCY_MESSAGE
    assert result.questions is None
    assert client.calls == []

    [entry] = asyncio.run(query_log.recent())
    assert entry.is_emergency
    assert entry.symptom == "sudden chest pain radiating to my arm"


def test_start_check_returns_generated_questions(make_service, query_log):
    service, client = make_service('```json\n{"questions": ["How long?", "How bad?", "Fever?"]}\n```')

    result = asyncio.run(service.start_check("persistent cough"))

    assert not result.is_emergency
    assert result.questions == ["How long?", "How bad?", "Fever?"]
    assert client.calls[0]["max_tokens"] == 512
    assert asyncio.run(query_log.count()) == 0


def test_start_check_falls_back_when_completion_fails(make_service, sleep):
    service, client = make_service(timeout_error())

    result = asyncio.run(service.start_check("persistent cough"))

    assert result.questions == list(FALLBACK_QUESTIONS)
    assert len(client.calls) == 2
    assert sleep.delays == [1.0]


def test_analyze_grounds_prompt_and_filters_unknown_conditions(make_service, query_log):
    service, client = make_service(MIGRAINE_ANALYSIS)
    answers = [ClarificationAnswer(question="How long?", answer="Two days")]

    result = asyncio.run(service.analyze(
        "throbbing headache with sensitivity to light for two days", answers
    ))

    prompt = client.prompts()[0]
    assert "Name: Migraine" in prompt
    assert client.calls[0]["max_tokens"] == 2048
    assert [c.condition_name for c in result.potential_conditions] == ["Migraine"]
    assert result.urgency_level is UrgencyLevel.LOW
    assert result.disclaimer == DISCLAIMER

    [entry] = asyncio.run(query_log.recent())
    assert entry.analysis_result == result
    assert entry.clarification_answers == answers
    assert not entry.is_emergency


def test_analyze_keeps_unknown_conditions_when_unrestricted(make_service, settings):
    settings.restrict_to_matched_conditions = False
    service, _ = make_service(MIGRAINE_ANALYSIS)

    result = asyncio.run(service.analyze("throbbing headache with sensitivity to light"))

    assert len(result.potential_conditions) == 2


def test_analyze_without_matches_or_completion_is_the_fallback(make_service):
    service, client = make_service(timeout_error())

    result = asyncio.run(service.analyze("zzzz qqqq xxxx wwww"))

    assert NO_MATCHING_CONDITIONS in client.prompts()[0]
    assert result.potential_conditions == ()
    assert result.urgency_level is UrgencyLevel.MEDIUM
    assert result.summary == FALLBACK_SUMMARY
    assert result.disclaimer == DISCLAIMER


def test_analyze_with_garbage_completion_is_the_fallback(make_service):
    service, _ = make_service("I am not able to help with that.")
    result = asyncio.run(service.analyze("runny nose and sneezing all week"))
    assert result.summary == FALLBACK_SUMMARY
    assert result.potential_conditions == ()


def test_emergency_context_in_analysis_is_flagged(make_service, query_log):
    service, _ = make_service(MIGRAINE_ANALYSIS)
    asyncio.run(service.analyze("headache and now some numbness in my arm"))

    [entry] = asyncio.run(query_log.recent())
    assert entry.is_emergency


def test_query_log_failure_does_not_fail_the_request(make_service):
    failing_log = FailingQueryLog()
    service, _ = make_service(MIGRAINE_ANALYSIS, log=failing_log)

    emergency = asyncio.run(service.start_check("I think I'm having a stroke"))
    analysis = asyncio.run(service.analyze("throbbing headache with sensitivity to light"))

    assert emergency.is_emergency
    assert analysis.disclaimer == DISCLAIMER
    assert failing_log.attempts == 2


def test_conditions_history_and_stats(make_service):
    service, _ = make_service(MIGRAINE_ANALYSIS)
    asyncio.run(service.start_check("crushing chest pain"))
    asyncio.run(service.analyze("throbbing headache with sensitivity to light"))

    names = [c.name for c in asyncio.run(service.list_conditions())]
    assert names == sorted(names)
    assert len(names) == 8

    history = asyncio.run(service.recent_history())
    assert len(history) == 2
    assert history[0].created_at >= history[1].created_at

    stats = asyncio.run(service.stats())
    assert (stats.total_queries, stats.emergency_queries, stats.conditions_count) == (2, 1, 8)


def test_create_service_seeds_memory_catalog(settings):
    service = asyncio.run(create_symptom_check_service(settings))

    assert asyncio.run(service.catalog.count()) == 8
    assert service.gateway.is_configured
