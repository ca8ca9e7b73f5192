import os

# settings/engine are read at import time; pin them before brezcode is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("ANTHROPIC_API_KEY", None)
os.environ.pop("OPENAI_API_KEY", None)
os.environ.setdefault("CLEANUP_INTERVAL_MINUTES", "0")

import random
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from brezcode.db import init_db, make_engine
from brezcode.errors import ProviderFailure
from brezcode.generation import (
    FallbackChain,
    KeywordFallbackStrategy,
    ProviderStrategy,
    QuestionFallbackStrategy,
    ResponseGenerator,
    fixed_score,
    parse_question_payload,
    ranged_score,
)
from brezcode.repository import InMemorySessionRepository, SqlSessionRepository
from brezcode.training import AvatarTrainingSessionService


class Clock:
    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeChatClient:
    """Stands in for a langchain chat model: records prompts, returns a canned reply or raises."""

    def __init__(self, reply="", model="fake-model"):
        self.reply = reply
        self.model = model
        self.prompts = []

    def invoke(self, messages):
        self.prompts.append(messages[-1].content)
        if isinstance(self.reply, Exception):
            raise self.reply
        return SimpleNamespace(content=self.reply)


def client_factory(client):
    def _factory(provider, *, max_tokens, temperature=None):
        if client is None:
            raise ProviderFailure(f"{provider} unavailable")
        return client
    return _factory


def build_generator(primary=None, backup=None, rng=None) -> ResponseGenerator:
    """primary/backup are FakeChatClient instances or None (provider unavailable)."""
    rng = rng or random.Random(7)

    def _providers(parser=None, simple=False, primary_range=(85, 100)):
        return [
            ProviderStrategy(
                "primary", "primary", max_tokens=500,
                scorer=ranged_score(*primary_range), parser=parser,
                client_factory=client_factory(primary), rng=rng,
            ),
            ProviderStrategy(
                "backup", "backup", max_tokens=2000,
                use_simple_prompt=simple, scorer=fixed_score(85), parser=parser,
                client_factory=client_factory(backup), rng=rng,
            ),
        ]

    return ResponseGenerator(
        FallbackChain(_providers(simple=True) + [KeywordFallbackStrategy()]),
        FallbackChain(_providers(parser=parse_question_payload) + [QuestionFallbackStrategy()]),
        FallbackChain(_providers(primary_range=(90, 100))),
    )


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def failing_generator():
    return build_generator()


@pytest.fixture
def service(clock, failing_generator):
    return AvatarTrainingSessionService(
        InMemorySessionRepository(),
        generator=failing_generator,
        now=clock,
        rng=random.Random(42),
    )


@pytest.fixture
def sql_engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_repo(sql_engine):
    return SqlSessionRepository(sessionmaker(autocommit=False, autoflush=False, bind=sql_engine))


@pytest.fixture(params=["memory", "sql"])
def repo(request):
    if request.param == "memory":
        return InMemorySessionRepository()
    return request.getfixturevalue("sql_repo")


@pytest.fixture
def make_generator():
    return build_generator


@pytest.fixture
def chat_client():
    return FakeChatClient
