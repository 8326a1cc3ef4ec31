"""
Shared pytest fixtures for SEL Insights tests.

Fixture summary
---------------
Database:
    db_path              -- temp .db file path with cleanup
    db_engine_session    -- (engine, session, db_path) tuple
    db_session           -- session bound to the temp database

Config:
    mock_config          -- config dict pointing at the temp database

Templates:
    builtin_registry     -- registry loaded from the shipped template sets
    make_template        -- factory for QuestionTemplate objects
    collision_registry   -- two sets that both define "a1" with different text

Data builders:
    make_answers         -- builds stored answer dicts for question ids
    add_survey           -- factory that inserts a Survey
    add_response         -- factory that inserts a SurveyResponse

Flask:
    flask_app            -- app seeded with two responses and one survey
    flask_client         -- test client for flask_app
"""

import os
import tempfile
from datetime import datetime, timedelta

import pytest

from sel_insights.database import Survey, SurveyResponse, get_engine, get_session, init_db
from sel_insights.models import GradeBand, QuestionTemplate, ResponseType, SELDomain, TemplateSet
from sel_insights.template_registry import TemplateRegistry, load_registry

BASE_TIME = datetime(2024, 3, 1, 9, 0, 0)

# ---------------------------------------------------------------------------
# Core database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path():
    """Provide a temporary database file path with cleanup."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    yield tmp.name
    try:
        if os.path.exists(tmp.name):
            os.remove(tmp.name)
    except OSError:
        pass  # Windows may still hold the lock


@pytest.fixture
def db_engine_session(db_path):
    """Provide (engine, session, db_path) for a fresh temp database."""
    engine = get_engine(db_path)
    init_db(engine)
    session = get_session(engine)
    yield engine, session, db_path
    session.close()
    engine.dispose()


@pytest.fixture
def db_session(db_engine_session):
    _, session, _ = db_engine_session
    return session


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config(db_path):
    """Config dict pointing to the temp database and the built-in templates."""
    return {
        "paths": {"database_file": db_path, "templates_dir": ""},
        "quality": {"excellent": 0.9, "good": 0.7, "fair": 0.5},
        "inference": {"overlap_threshold": 0.8},
        "logging": {"level": "WARNING"},
    }


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    """Keep developer environment overrides out of the tests."""
    for name in ("DATABASE_URL", "DATABASE_PATH", "SEL_TEMPLATES_DIR"):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Template fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def builtin_registry():
    return load_registry()


@pytest.fixture
def make_template():
    """Factory fixture: build a QuestionTemplate with sensible defaults."""

    def _create(qid, text=None, grade_band=GradeBand.LOWER, **overrides):
        fields = {
            "id": qid,
            "text": text or f"Question {qid}",
            "response_type": ResponseType.NUMERIC_SCALE,
            "domain": SELDomain.SELF_AWARENESS,
            "grade_band": grade_band,
        }
        fields.update(overrides)
        return QuestionTemplate(**fields)

    return _create


@pytest.fixture
def collision_registry(make_template):
    """Lower and upper sets that both define "a1" with different text."""
    lower = TemplateSet(
        id="lower-set",
        title="Lower",
        grade_band=GradeBand.LOWER,
        templates=(make_template("a1", "Lower a1"), make_template("b1", "Lower b1")),
    )
    upper = TemplateSet(
        id="upper-set",
        title="Upper",
        grade_band=GradeBand.UPPER,
        templates=(
            make_template("a1", "Upper a1", GradeBand.UPPER),
            make_template("c1", "Upper c1", GradeBand.UPPER),
        ),
    )
    return TemplateRegistry([lower, upper])


# ---------------------------------------------------------------------------
# Data builder fixtures
# ---------------------------------------------------------------------------


def answers(*question_ids, answer=3, domain="selfAwareness"):
    """Stored answer dicts for the given question ids."""
    return [{"questionId": qid, "answer": answer, "domain": domain} for qid in question_ids]


@pytest.fixture
def make_answers():
    return answers


@pytest.fixture
def add_survey():
    """Factory fixture: insert a Survey; ``minutes`` offsets created_at."""

    def _create(session, survey_id, question_ids, minutes=0, **overrides):
        fields = {
            "id": survey_id,
            "title": f"Survey {survey_id}",
            "survey_type": "custom",
            "question_ids": list(question_ids),
            "created_at": BASE_TIME + timedelta(minutes=minutes),
        }
        fields.update(overrides)
        survey = Survey(**fields)
        session.add(survey)
        session.commit()
        return survey

    return _create


@pytest.fixture
def add_response():
    """Factory fixture: insert a SurveyResponse; ``minutes`` offsets submitted_at."""

    def _create(session, response_id, responses, grade=3, minutes=0, **overrides):
        fields = {
            "id": response_id,
            "student_id": "student-1",
            "survey_id": None,
            "survey_type": "daily",
            "grade": grade,
            "responses": responses,
            "submitted_at": BASE_TIME + timedelta(minutes=minutes),
        }
        fields.update(overrides)
        response = SurveyResponse(**fields)
        session.add(response)
        session.commit()
        return response

    return _create


# ---------------------------------------------------------------------------
# Flask test client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def flask_app(db_path, mock_config, add_survey, add_response):
    """Flask app over a temp database seeded with a survey and two responses.

    r-1 answers two template questions and one unknown id (student-1, grade 3);
    r-2 answers custom questions that match survey s-1 (student-2, grade 6).
    """
    from sel_insights.web.app import create_app

    engine = get_engine(db_path)
    init_db(engine)
    session = get_session(engine)
    add_survey(session, "s-1", ["x1", "x2", "x3", "x4"])
    add_response(session, "r-1", answers("sa1", "sm2", "q-missing"))
    add_response(
        session,
        "r-2",
        answers("x1", "x2", "x3", answer="yes"),
        grade=6,
        minutes=5,
        student_id="student-2",
        survey_type="custom",
    )
    session.close()
    engine.dispose()

    app = create_app(mock_config)
    app.config["TESTING"] = True

    yield app

    app.config["DB_ENGINE"].dispose()


@pytest.fixture
def flask_client(flask_app):
    with flask_app.test_client() as client:
        yield client
