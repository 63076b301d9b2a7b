"""
Catalog Reader: read-only lookup of quiz and question definitions.

The catalog is owned by another service. Components here depend on the
CatalogReader protocol; SqlCatalogReader is the adapter used when the
catalog tables live in the same database.
"""

from __future__ import annotations

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quizpulse.db.database import session_scope
from quizpulse.db.models import Question, Quiz
from quizpulse.errors import InternalError


@dataclass(frozen=True)
class QuizInfo:
    id: str
    title: str
    topic: str
    difficulty: str


@dataclass(frozen=True)
class QuestionInfo:
    id: str
    quiz_id: str
    content: str
    question_type: str
    correct_answer: tuple[str, ...]
    options: tuple[str, ...] = field(default=())


class CatalogReader(Protocol):
    def get_quiz(self, quiz_id: str) -> QuizInfo | None: ...

    def get_question(self, question_id: str) -> QuestionInfo | None: ...

    def get_quizzes(self, quiz_ids: Iterable[str]) -> dict[str, QuizInfo]: ...

    def get_questions(self, question_ids: Iterable[str]) -> dict[str, QuestionInfo]: ...

    def count_questions(self, quiz_id: str) -> int: ...


@contextmanager
def catalog_session(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Read session whose storage failures surface as InternalError."""
    try:
        with session_scope(factory) as session:
            yield session
    except SQLAlchemyError as e:
        logger.error("Catalog read failed: {}", e)
        raise InternalError("catalog unavailable") from e


def _quiz_info(row: Quiz) -> QuizInfo:
    return QuizInfo(id=row.id, title=row.title, topic=row.topic, difficulty=row.difficulty)


def _question_info(row: Question) -> QuestionInfo:
    return QuestionInfo(
        id=row.id,
        quiz_id=row.quiz_id,
        content=row.content,
        question_type=row.question_type,
        correct_answer=tuple(str(a) for a in row.correct_answer or ()),
        options=tuple(str(o) for o in row.options or ()),
    )


class SqlCatalogReader:
    """CatalogReader over the catalog tables, one short read session per call."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def get_quiz(self, quiz_id: str) -> QuizInfo | None:
        with catalog_session(self.session_factory) as session:
            row = session.get(Quiz, quiz_id)
            return _quiz_info(row) if row else None

    def get_question(self, question_id: str) -> QuestionInfo | None:
        with catalog_session(self.session_factory) as session:
            row = session.get(Question, question_id)
            return _question_info(row) if row else None

    def get_quizzes(self, quiz_ids: Iterable[str]) -> dict[str, QuizInfo]:
        ids = list(set(quiz_ids))
        if not ids:
            return {}
        with catalog_session(self.session_factory) as session:
            rows = session.scalars(select(Quiz).where(Quiz.id.in_(ids)))
            return {row.id: _quiz_info(row) for row in rows}

    def get_questions(self, question_ids: Iterable[str]) -> dict[str, QuestionInfo]:
        ids = list(set(question_ids))
        if not ids:
            return {}
        with catalog_session(self.session_factory) as session:
            rows = session.scalars(select(Question).where(Question.id.in_(ids)))
            found = {row.id: _question_info(row) for row in rows}
        if len(found) != len(ids):
            logger.debug("Catalog missing {} of {} questions", len(ids) - len(found), len(ids))
        return found

    def count_questions(self, quiz_id: str) -> int:
        with catalog_session(self.session_factory) as session:
            stmt = select(func.count(Question.id)).where(Question.quiz_id == quiz_id)
            return int(session.scalar(stmt) or 0)
