"""
AttemptStore: attempt lifecycle state and CRUD.

Every read, abandon and delete is gated by ownership: only the user who
created an attempt may see or change it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from quizpulse.attempts.grading import require_uuid
from quizpulse.catalog.reader import CatalogReader, QuestionInfo
from quizpulse.db.models import AttemptStatus, QuizAttempt, QuizAttemptAnswer
from quizpulse.db.unit_of_work import UnitOfWorkFactory
from quizpulse.errors import ConflictError, NotFoundError, UnauthorizedError


@dataclass
class AttemptDetail:
    """An attempt with its answers, each joined to its question."""

    attempt: QuizAttempt
    answers: list[QuizAttemptAnswer] = field(default_factory=list)
    questions: dict[str, QuestionInfo] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = self.attempt.to_dict()
        payload["answers"] = []
        for answer in self.answers:
            item = answer.to_dict()
            question = self.questions.get(answer.question_id)
            item["question"] = (
                {
                    "id": question.id,
                    "content": question.content,
                    "question_type": question.question_type,
                    "options": list(question.options),
                    "correct_answer": list(question.correct_answer),
                }
                if question
                else None
            )
            payload["answers"].append(item)
        return payload


def check_owner(attempt: QuizAttempt | None, user_id: str) -> QuizAttempt:
    """Raise NotFound/Unauthorized unless the attempt exists and belongs to user_id."""
    if attempt is None:
        raise NotFoundError("Quiz attempt not found")
    if attempt.user_id != user_id:
        raise UnauthorizedError("Unauthorized", attempt_id=attempt.id)
    return attempt


class AttemptStore:
    def __init__(self, uow_factory: UnitOfWorkFactory, catalog: CatalogReader):
        self.uow_factory = uow_factory
        self.catalog = catalog

    def create_initial(self, quiz_id: str, user_id: str) -> QuizAttempt:
        """Start an InProgress attempt with every score field unset."""
        quiz_id = require_uuid(quiz_id, "quiz ID")
        if self.catalog.get_quiz(quiz_id) is None:
            raise NotFoundError("Quiz not found", quiz_id=quiz_id)

        with self.uow_factory() as uow:
            attempt = uow.attempts.add(
                QuizAttempt(user_id=user_id, quiz_id=quiz_id, status=AttemptStatus.IN_PROGRESS)
            )
            uow.commit()

        logger.info("Attempt {} started by user {} on quiz {}", attempt.id, user_id, quiz_id)
        return attempt

    def get(self, attempt_id: str, user_id: str) -> AttemptDetail:
        attempt_id = require_uuid(attempt_id, "attempt ID")
        with self.uow_factory() as uow:
            attempt = check_owner(uow.attempts.get(attempt_id), user_id)
            answers = uow.answers.list_for_attempt(attempt_id)

        questions = self.catalog.get_questions(a.question_id for a in answers)
        return AttemptDetail(attempt=attempt, answers=answers, questions=questions)

    def list_for_user(self, user_id: str) -> list[QuizAttempt]:
        with self.uow_factory() as uow:
            return uow.attempts.list_for_user(user_id)

    def abandon(self, attempt_id: str, user_id: str) -> QuizAttempt:
        attempt_id = require_uuid(attempt_id, "attempt ID")
        with self.uow_factory() as uow:
            attempt = check_owner(uow.attempts.get_for_update(attempt_id), user_id)
            if not uow.attempts.abandon_if_in_progress(attempt_id):
                raise ConflictError("This quiz attempt is already completed or abandoned")
            uow.attempts.refresh(attempt)
            uow.commit()

        logger.info("Attempt {} abandoned by user {}", attempt_id, user_id)
        return attempt

    def delete(self, attempt_id: str, user_id: str) -> None:
        attempt_id = require_uuid(attempt_id, "attempt ID")
        with self.uow_factory() as uow:
            attempt = check_owner(uow.attempts.get(attempt_id), user_id)
            uow.attempts.delete(attempt)
            uow.commit()

        logger.info("Attempt {} deleted by user {}", attempt_id, user_id)
