import os
import shutil
import tempfile

UPLOAD_ROOT = tempfile.mkdtemp(prefix="healthdiary-test-")

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = UPLOAD_ROOT
os.environ["SECRET_KEY"] = "test-secret"
os.environ["KP_REFRESH_ENABLED"] = "false"
os.environ["AI_API_KEY"] = ""

from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from healthdiary.config import get_settings

get_settings.cache_clear()

from healthdiary.auth import decode_token
from healthdiary.db import get_db
from healthdiary.db.database import Base
from healthdiary.integrations import KpFeed
from healthdiary.main import app
from healthdiary.models import Symptom, Medication
from healthdiary.services.rate_limiter import RateLimiter


class FakeKpFeed(KpFeed):
    """In-memory KpFeed that records what was asked for."""

    def __init__(self, daily=None, forecast=None):
        self.daily = list(daily or [])
        self.forecast = list(forecast or [])
        self.daily_calls = []
        self.forecast_calls = []

    async def fetch_daily(self, start, end):
        self.daily_calls.append((start, end))
        return [r for r in self.daily if start <= r.date <= end]

    async def fetch_forecast(self, start, end):
        self.forecast_calls.append((start, end))
        return [r for r in self.forecast if start <= r.date <= end]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def clean_uploads():
    yield
    for child in Path(UPLOAD_ROOT).iterdir():
        if child.is_dir():
            shutil.rmtree(child)
        else:
            child.unlink()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.ai_limiter = RateLimiter(min_interval=0, max_concurrent=1)
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email="anna@example.com", password="secret123", username="anna",
             birth_date="15.04.1990"):
    response = client.post("/api/user/registration", json={
        "username": username,
        "email": email,
        "birthDate": birth_date,
        "password": password,
    })
    assert response.status_code == 200, response.text
    token = response.json()["token"]
    return {
        "id": decode_token(token)["id"],
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
    }


@pytest.fixture
def user(client):
    return register(client)


@pytest.fixture
def other_user(client):
    return register(client, email="boris@example.com", username="boris")


@pytest.fixture
def templates(db):
    """Shared presets: two symptoms and one medication."""
    headache = Symptom(name="Headache", is_custom=False)
    nausea = Symptom(name="Nausea", is_custom=False)
    ibuprofen = Medication(name="Ibuprofen", is_custom=False)
    db.add_all([headache, nausea, ibuprofen])
    db.commit()
    return {"headache": headache.id, "nausea": nausea.id, "ibuprofen": ibuprofen.id}


def log_symptom(client, user, symptom_id, when, weight=3):
    response = client.post("/api/healthRecords/symptoms", headers=user["headers"], json={
        "recordDate": when,
        "weight": weight,
        "symptomId": symptom_id,
    })
    assert response.status_code == 201, response.text
    return response.json()


def log_medication(client, user, medication_id, when, dosage="200mg", quantity=1):
    response = client.post("/api/healthRecords/medications", headers=user["headers"], json={
        "recordDate": when,
        "dosage": dosage,
        "quantity": quantity,
        "medicationId": medication_id,
    })
    assert response.status_code == 201, response.text
    return response.json()
