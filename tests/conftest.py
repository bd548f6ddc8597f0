import os
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

# must be set before config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["WEBHOOK_SECRET"] = ""
os.environ["GOBII_API_KEY"] = "test-key"
os.environ["STATIC_DIR"] = str(ROOT / "static")
os.environ["TEMPLATES_DIR"] = str(ROOT / "templates")

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from sqlmodel import SQLModel, Session

import accounts
import config
from database import engine, init_db
from jobs import JobForm, create_job

NOW = datetime(2025, 6, 1, 12, 0, 0)


@pytest.fixture
def session():
    SQLModel.metadata.drop_all(engine)
    init_db()
    with Session(engine) as s:
        yield s
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def client(session):
    from fastapi.testclient import TestClient
    from main import app

    # no context manager: the lifespan would seed sample jobs and start the scheduler
    return TestClient(app)


@pytest.fixture
def gobii():
    """A GobiiClient stand-in; tests set submit_task / get_status return values."""
    client = Mock()
    client.submit_task.return_value = {"id": "task-1", "status": "in_progress"}
    return client


@pytest.fixture
def logo_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "LOGO_DIR", str(tmp_path))
    return tmp_path


def make_job(session, now=NOW, **overrides):
    data = {
        "title": "Backend Engineer",
        "company": "Acme",
        "location": "Berlin",
        "description": "Build APIs",
    }
    data.update(overrides)
    is_draft = data.pop("is_draft", False)
    user_id = data.pop("user_id", None)
    return create_job(session, JobForm(**data), user_id=user_id, is_draft=is_draft, now=now)


def make_profile(session, email="seeker@example.com", user_type="job_seeker", admin=False):
    profile = accounts.register(session, email, "secret123", "Test User")
    if user_type:
        accounts.set_user_type(session, profile, user_type)
    if admin:
        accounts.grant_admin(session, profile.id)
    return profile


def login(client, session, profile):
    token = accounts.create_session(session, profile)
    client.cookies.set(config.SESSION_COOKIE, token)
    return token


def days_ago(days, now=NOW):
    return now - timedelta(days=days)
