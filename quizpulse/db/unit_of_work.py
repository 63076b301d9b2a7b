"""
Unit of work over a SQLAlchemy session factory.

Usage:
    with uow_factory() as uow:
        uow.attempts.add(attempt)
        uow.commit()

Leaving the block without commit() discards pending writes. Storage errors surface as
InternalError; a violated answer uniqueness constraint surfaces as
ConflictError.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quizpulse.db.repositories import AnswerRepository, AttemptRepository, InsightRepository
from quizpulse.errors import ConflictError, InternalError, QuizPulseError


class UnitOfWork:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self.session: Session | None = None

    def __enter__(self) -> "UnitOfWork":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        # close() ends an uncommitted transaction without expiring loaded
        # objects, so read-only units can hand their results to callers
        try:
            if exc is not None:
                self.rollback()
        finally:
            self.session.close()
            self.session = None

        if exc is None or isinstance(exc, QuizPulseError):
            return False
        if isinstance(exc, IntegrityError):
            raise _integrity_to_error(exc) from exc
        if isinstance(exc, SQLAlchemyError):
            logger.error("Transaction failed: {}", exc)
            raise InternalError("storage failure") from exc
        return False

    def begin(self) -> None:
        self.session = self._session_factory()
        self.session.begin()
        self.attempts = AttemptRepository(self.session)
        self.answers = AnswerRepository(self.session)
        self.insights = InsightRepository(self.session)

    def commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise _integrity_to_error(e) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Commit failed: {}", e)
            raise InternalError("storage failure during commit") from e

    def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            self.session.rollback()


class UnitOfWorkFactory:
    """Callable producing a fresh UnitOfWork per transaction."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def __call__(self) -> UnitOfWork:
        return UnitOfWork(self.session_factory)


# SQLite reports the violated columns instead of the constraint name
_SQLITE_ANSWER_UNIQUE = (
    "UNIQUE constraint failed: quiz_attempt_answers.attempt_id, quiz_attempt_answers.question_id"
)


def _is_duplicate_answer(message: str) -> bool:
    return "uq_attempt_question" in message or _SQLITE_ANSWER_UNIQUE in message


def _integrity_to_error(exc: IntegrityError) -> QuizPulseError:
    if _is_duplicate_answer(str(exc.orig)):
        return ConflictError("answer for this question already submitted")
    logger.error("Integrity error: {}", exc)
    return InternalError("storage integrity failure")
