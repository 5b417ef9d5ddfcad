from types import SimpleNamespace

import httpx
import pytest
from openai import APITimeoutError

from config.config import DEFAULT_SEED_PATH, Settings
from services.condition_catalog import InMemoryConditionCatalog
from services.llm_gateway import LLMGateway
from services.query_log import InMemoryQueryLog
from services.seed_data import load_seed_conditions
from services.symptom_check_service import SymptomCheckService


def timeout_error() -> APITimeoutError:
    return APITimeoutError(
        request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    )


class DummyCompletions:
    """Scripted stand-in for ``client.chat.completions``.

    Each call consumes the next outcome: strings become the completion
    content, exceptions are raised. The last outcome repeats.
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))])


class DummyClient:
    def __init__(self, *outcomes):
        self.completions = DummyCompletions(outcomes or [""])
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls

    def prompts(self):
        return [call["messages"][0]["content"] for call in self.calls]


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def settings():
    return Settings(llm_api_key="test-key", rate_limit_enabled=False)


@pytest.fixture
def seed_conditions():
    return load_seed_conditions(DEFAULT_SEED_PATH)


@pytest.fixture
def catalog(seed_conditions):
    return InMemoryConditionCatalog(seed_conditions)


@pytest.fixture
def query_log():
    return InMemoryQueryLog()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_service(settings, catalog, query_log, sleep):
    """Build a service whose completion client replays the given outcomes."""

    def build(*outcomes, log=None):
        client = DummyClient(*outcomes)
        gateway = LLMGateway(settings, client=client, sleep=sleep)
        service = SymptomCheckService(catalog, log or query_log, gateway, settings=settings)
        return service, client

    return build
