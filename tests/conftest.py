import os
import tempfile
import uuid
from datetime import timedelta
from pathlib import Path

# Point the engine at a throwaway SQLite file before the package is imported
_DB_DIR = Path(tempfile.mkdtemp(prefix="assignment-engine-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ATTEMPT_GRACE_SECONDS", "0")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from assignment_engine.core.security import ROLE_STUDENT, create_access_token
from assignment_engine.db.database import AsyncSessionLocal, Base, engine
from assignment_engine.models import Assignment, Attempt, Question
from assignment_engine.utils.datetime_utils import utcnow


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Pooled aiosqlite connections are bound to this test's event loop
    await engine.dispose()


@pytest.fixture
def session_factory():
    return AsyncSessionLocal


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def student_id():
    return uuid.uuid4()


# ============================================================
# Assignment factory
# ============================================================

def single_question(correct="A", marks=1, order=0, **overrides):
    data = dict(
        id=uuid.uuid4(),
        question_type="single",
        question_text=f"Question {order + 1}",
        options={"A": "Alpha", "B": "Beta", "C": "Gamma", "D": "Delta"},
        correct_answers=[correct],
        explanation="Because.",
        marks=marks,
        display_order=order,
    )
    data.update(overrides)
    return data


def multiple_question(correct=("A", "C"), marks=1, order=0, **overrides):
    data = dict(
        id=uuid.uuid4(),
        question_type="multiple",
        question_text=f"Question {order + 1}",
        options={"A": "Alpha", "B": "Beta", "C": "Gamma", "D": "Delta"},
        correct_answers=list(correct),
        explanation=None,
        marks=marks,
        display_order=order,
    )
    data.update(overrides)
    return data


@pytest.fixture
def make_assignment(session_factory):
    """
    Persist an assignment with its questions.

    Defaults: 10 single-answer questions worth 1 mark each, pass at 6,
    30 minute limit, 2 attempts.
    """
    async def _make(questions=None, **overrides):
        if questions is None:
            questions = [single_question(order=i) for i in range(10)]
        fields = dict(
            id=uuid.uuid4(),
            title="Fractions check",
            question_count=len(questions),
            total_marks=sum(q["marks"] for q in questions),
            passing_marks=6,
            time_limit_minutes=30,
            max_attempts=2,
            shuffle_questions=False,
            show_results_immediately=True,
            allow_review=True,
            is_active=True,
        )
        fields.update(overrides)

        async with session_factory() as session:
            assignment = Assignment(**fields)
            session.add(assignment)
            for q in questions:
                session.add(Question(assignment_id=assignment.id, **q))
            await session.commit()

        assignment.question_data = questions
        return assignment

    return _make


@pytest.fixture
def expire_attempt(session_factory):
    """Move an attempt's clock into the past so its deadline has elapsed."""
    async def _expire(attempt_id, minutes_ago=1, time_limit_minutes=30):
        deadline = utcnow() - timedelta(minutes=minutes_ago)
        async with session_factory() as session:
            await session.execute(
                update(Attempt)
                .where(Attempt.id == attempt_id)
                .values(
                    deadline_at=deadline,
                    started_at=deadline - timedelta(minutes=time_limit_minutes),
                )
            )
            await session.commit()

    return _expire


def answers_for(questions, wrong_indexes=()):
    """Answer map with every question correct except the given positions."""
    answers = {}
    for index, q in enumerate(questions):
        correct = q["correct_answers"]
        if index in wrong_indexes:
            wrong = next(label for label in q["options"] if label not in correct)
            answers[str(q["id"])] = wrong if q["question_type"] == "single" else [wrong]
        else:
            answers[str(q["id"])] = correct[0] if q["question_type"] == "single" else list(correct)
    return answers


# ============================================================
# HTTP client
# ============================================================

def auth_headers(user_id, role=ROLE_STUDENT):
    token = create_access_token(user_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client():
    from assignment_engine.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
