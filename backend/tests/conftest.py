"""Shared fixtures: in-memory database, local embeddings, a stubbed chat model."""

import os
import sys
import tempfile

# Settings are read at import time, so the environment has to be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="atlas-uploads-")
os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["LLM_PROVIDER"] = "none"
os.environ["CHAT_RATE_LIMIT"] = "1000/minute"
os.environ["UPSTREAM_RETRIES"] = "1"
os.environ["SEED_SAMPLE_GAMES"] = "false"

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient

from atlas.database import Base, SessionLocal, engine
from atlas.main import app
from atlas.services import ai_client


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


class FakeChat:
    """Records every prompt and answers with a fixed reply."""

    def __init__(self, reply: str = "Score points from birds, bonus cards, goals, eggs, cached food and tucked cards."):
        self.reply = reply
        self.calls: list[dict] = []

    async def __call__(self, system, messages, max_tokens=None, temperature=None):
        self.calls.append({"system": system, "messages": messages})
        return self.reply


@pytest.fixture
def fake_chat(monkeypatch):
    fake = FakeChat()
    monkeypatch.setattr(ai_client, "chat", fake)
    return fake


@pytest.fixture
def wingspan(db):
    from atlas.services import game_service

    return game_service.create_game(
        db,
        {
            "name": "Wingspan",
            "publisher": "Stonemaier Games",
            "year_published": 2019,
            "min_players": 1,
            "max_players": 5,
            "complexity_rating": 2.4,
            "bgg_id": 266192,
        },
    )
