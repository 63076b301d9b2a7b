"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Database-backed tests run against a file-backed SQLite database created per
test under tmp_path.
"""
import sys
import threading
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from quizpulse.attempts.bulk import BulkAttemptSubmitter
from quizpulse.attempts.recorder import AnswerRecorder
from quizpulse.attempts.store import AttemptStore
from quizpulse.catalog.badges import SqlBadgeCatalog
from quizpulse.catalog.reader import SqlCatalogReader
from quizpulse.dashboard.projector import DashboardProjector
from quizpulse.db.database import create_db_engine, create_session_factory, init_db, session_scope
from quizpulse.db.models import (
    AttemptStatus,
    Badge,
    Question,
    Quiz,
    QuizAttempt,
    QuizAttemptAnswer,
    UserBadge,
)
from quizpulse.db.unit_of_work import UnitOfWorkFactory
from quizpulse.insights.engine import InsightEngine


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class RecordingScheduler:
    """Insight scheduler that only remembers which users were enqueued."""

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def enqueue(self, user_id):
        with self._lock:
            self.calls.append(user_id)
        return True


USER_ID = "user-alice"
OTHER_USER_ID = "user-bob"


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def other_user_id():
    return OTHER_USER_ID


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'quizpulse.db'}",
        log_file=None,
        insight_retry_backoff_seconds=0.01,
    )


@pytest.fixture
def db_engine(settings):
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def uow_factory(session_factory):
    return UnitOfWorkFactory(session_factory)


@pytest.fixture
def catalog(session_factory):
    return SqlCatalogReader(session_factory)


@pytest.fixture
def badge_catalog(session_factory):
    return SqlBadgeCatalog(session_factory)


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def store(uow_factory, catalog):
    return AttemptStore(uow_factory, catalog)


@pytest.fixture
def recorder(uow_factory, catalog, scheduler):
    return AnswerRecorder(uow_factory, catalog, scheduler)


@pytest.fixture
def bulk(uow_factory, catalog, scheduler):
    return BulkAttemptSubmitter(uow_factory, catalog, scheduler)


@pytest.fixture
def insight_engine(uow_factory, catalog):
    return InsightEngine(uow_factory, catalog)


@pytest.fixture
def projector(uow_factory, badge_catalog):
    return DashboardProjector(uow_factory, badge_catalog)


# ========================================
# Seeding helpers
# ========================================


@pytest.fixture
def make_quiz(session_factory):
    """
    Insert a quiz with one question per correct answer.

    Returns (quiz_id, [question_id, ...]) in question order.
    """

    def _make(topic="Algebra", difficulty="EASY", correct_answers=(["A"], ["B"], ["C"])):
        with session_scope(session_factory) as session:
            quiz = Quiz(title=f"{topic} quiz", topic=topic, difficulty=difficulty)
            session.add(quiz)
            session.flush()
            question_ids = []
            for i, correct in enumerate(correct_answers):
                question = Question(
                    quiz_id=quiz.id,
                    content=f"Question {i + 1}",
                    question_type="MULTI_SELECT" if len(correct) > 1 else "MCQ",
                    options=["A", "B", "C", "D"],
                    correct_answer=list(correct),
                )
                session.add(question)
                session.flush()
                question_ids.append(question.id)
            return quiz.id, question_ids

    return _make


@pytest.fixture
def mcq_quiz(make_quiz):
    """Three-question MCQ quiz whose correct answers are A, B, C."""
    return make_quiz()


@pytest.fixture
def make_completed_attempt(session_factory):
    """
    Insert a Completed attempt with the given answer correctness flags.

    Questions must belong to quiz_id; ``results`` pairs question ids with
    is_correct.
    """

    def _make(user_id, quiz_id, results, completed_at=None):
        completed_at = completed_at or datetime(2026, 1, 1, 12, 0)
        correct = sum(1 for _, ok in results if ok)
        with session_scope(session_factory) as session:
            attempt = QuizAttempt(
                user_id=user_id,
                quiz_id=quiz_id,
                status=AttemptStatus.COMPLETED,
                score=round(correct / len(results) * 100) if results else 0,
                total_questions=len(results),
                correct_answers=correct,
                created_at=completed_at - timedelta(minutes=5),
                completed_at=completed_at,
            )
            session.add(attempt)
            session.flush()
            for order, (question_id, ok) in enumerate(results):
                session.add(
                    QuizAttemptAnswer(
                        attempt_id=attempt.id,
                        question_id=question_id,
                        question_order=order,
                        selected_answer=["A"],
                        is_correct=ok,
                    )
                )
            return attempt.id

    return _make


@pytest.fixture
def award_badge(session_factory):
    def _award(user_id, name="Beginner", description="First steps", achieved_at=None, badge_id=None):
        with session_scope(session_factory) as session:
            if badge_id is None:
                badge = Badge(name=name, description=description, min_score_threshold=50)
                session.add(badge)
                session.flush()
                badge_id = badge.id
            session.add(
                UserBadge(
                    user_id=user_id,
                    badge_id=badge_id,
                    achieved_at=achieved_at or datetime(2026, 1, 1),
                )
            )
            return badge_id

    return _award
