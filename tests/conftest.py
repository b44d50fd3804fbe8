import os

import pytest
from sqlalchemy.pool import StaticPool

# Keep tests off the real database and quiet
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient

from app import app, get_db, get_llm
from models import CardContent, PlanItem, QuizItem, Term, get_engine, get_session, init_db


class FakeLLM:
    """Stands in for LLMClient so route tests never touch the network."""

    def __init__(self):
        self.calls = []

    def summarize(self, title, url, text):
        self.calls.append(("summarize", title))
        return {"summary": f"About {title}", "key_points": ["point"], "tags": ["python"]}

    def generate_card(self, title, summary, text):
        self.calls.append(("generate_card", title))
        return CardContent(
            title=f"Card: {title}",
            summary=summary or "summary",
            key_points=["k1", "k2"],
            terms=[Term(term="GIL", definition="Global interpreter lock")],
            misconceptions=["threads run Python code in parallel"],
            self_quiz=[QuizItem(q="What is the GIL?", a="A lock", explain="It serializes bytecode")],
        )

    def generate_plan(self, date, records):
        self.calls.append(("generate_plan", date))
        return [
            PlanItem(title=r["title"], action="Review", reason="recent", record_id=r["id"])
            for r in records
        ]


@pytest.fixture
def engine():
    engine = get_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = get_session(engine)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def client(engine, fake_llm):
    def override_db():
        session = get_session(engine)
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_llm] = lambda: fake_llm
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
