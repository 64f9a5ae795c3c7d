"""
Shared fixtures: in-memory SQLite database, fake AI generator and recording notifier.
"""
import os
import sys

# Settings are read at import time, so these must be set before any app import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_FILE_LOGGING"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["GEMINI_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""

# Add the parent directory to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from fastapi.testclient import TestClient

from app import app
from db_config import Base, SessionLocal, engine
from schemas.study_guide import Flashcard, Keyword
from services.ai_manager import get_ai_generator
from services.notification_service import get_notification_service


class FakeAIGenerator:
    """Stands in for AIContentGenerator; returns canned results and records calls."""

    def __init__(self):
        self.summary = "A generated summary."
        self.flashcards = [Flashcard(question="What is tested?", answer="Everything")]
        self.keywords = [Keyword(word="testing", importance=7)]
        self.calls = []

    async def summarize(self, content):
        self.calls.append(("summarize", content))
        return self.summary

    async def generate_flashcards(self, content):
        self.calls.append(("generate_flashcards", content))
        return list(self.flashcards)

    async def extract_keywords(self, content):
        self.calls.append(("extract_keywords", content))
        return list(self.keywords)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


class RecordingNotifier:
    """Stands in for NotificationService; keeps every emitted event in order."""

    def __init__(self):
        self.events = []

    def emit_created(self, study_guide):
        self.events.append(("studyGuide:created", {
            "id": study_guide.id,
            "title": study_guide.title,
            "subjects": list(study_guide.subjects),
            "creator": study_guide.creator_id,
        }))

    def emit_updated(self, study_guide_id, updated_by, updated_at):
        self.events.append(("studyGuide:updated", {
            "study_guide_id": study_guide_id, "updated_by": updated_by, "updated_at": updated_at,
        }))

    def emit_deleted(self, study_guide_id):
        self.events.append(("studyGuide:deleted", {"study_guide_id": study_guide_id}))

    def emit_upvoted(self, study_guide_id, upvotes, upvoted_by):
        self.events.append(("studyGuide:upvoted", {
            "study_guide_id": study_guide_id, "upvotes": upvotes, "upvoted_by": list(upvoted_by),
        }))

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ai_generator():
    return FakeAIGenerator()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(db_session, ai_generator, notifier):
    app.dependency_overrides[get_ai_generator] = lambda: ai_generator
    app.dependency_overrides[get_notification_service] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, username, password="password123"):
    """Register a user through the API. Returns (user id, auth headers)."""
    response = client.post("/users", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
    })
    assert response.status_code == 201, response.json()
    body = response.json()
    return body["id"], {"Authorization": f"Bearer {body['token']}"}


def guide_payload(**overrides):
    payload = {
        "title": "Cell Biology Basics",
        "description": "Intro to cells",
        "content": "Cells are the basic unit of life. " * 5,
        "subjects": ["Biology"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def alice(client):
    return register(client, "alice")


@pytest.fixture
def bob(client):
    return register(client, "bob")
