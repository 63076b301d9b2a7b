"""
AnswerRecorder: records one answer per question per attempt and drives the
InProgress -> Completed transition.

The record / count / transition sequence runs under three guards so that two
concurrent submissions of an attempt's final answers complete it exactly once:

1. an in-process per-attempt lock (AttemptLocks)
2. a row lock on the attempt (SELECT ... FOR UPDATE where supported)
3. a compare-and-swap status update inside the same transaction as the insert

The insight run is enqueued only after the transaction commits.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from quizpulse.attempts.grading import (
    MATCH_ORDERED,
    answers_match,
    normalize_answer,
    require_uuid,
    score_percent,
)
from quizpulse.attempts.locks import AttemptLocks
from quizpulse.attempts.store import check_owner
from quizpulse.catalog.reader import CatalogReader
from quizpulse.db.models import QuizAttempt, QuizAttemptAnswer
from quizpulse.db.unit_of_work import UnitOfWorkFactory
from quizpulse.errors import ConflictError, NotFoundError, ValidationError
from quizpulse.insights.worker import InsightScheduler


@dataclass
class SubmitResult:
    is_correct: bool
    answer: QuizAttemptAnswer
    attempt: QuizAttempt
    completed: bool = False


class AnswerRecorder:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        catalog: CatalogReader,
        scheduler: InsightScheduler,
        locks: AttemptLocks | None = None,
        match_mode: str = MATCH_ORDERED,
    ):
        self.uow_factory = uow_factory
        self.catalog = catalog
        self.scheduler = scheduler
        self.locks = locks or AttemptLocks()
        self.match_mode = match_mode

    def submit(
        self,
        attempt_id: str,
        question_id: str,
        selected_answer: Sequence[str] | str,
        user_id: str,
        question_order: int | None = None,
    ) -> SubmitResult:
        """
        Record an answer and complete the attempt if it was the last one.

        Raises:
            ValidationError: malformed ids, or question from another quiz
            NotFoundError: attempt or question missing
            UnauthorizedError: attempt owned by another user
            ConflictError: attempt not in progress, or question already answered
        """
        attempt_id = require_uuid(attempt_id, "attempt ID")
        question_id = require_uuid(question_id, "question ID")
        selected = normalize_answer(selected_answer)

        with self.locks.hold(attempt_id):
            with self.uow_factory() as uow:
                attempt = check_owner(uow.attempts.get_for_update(attempt_id), user_id)
                if not attempt.is_in_progress:
                    raise ConflictError(
                        "This quiz attempt is already completed or abandoned",
                        status=attempt.status,
                    )

                question = self.catalog.get_question(question_id)
                if question is None:
                    raise NotFoundError("Question not found", question_id=question_id)
                if question.quiz_id != attempt.quiz_id:
                    raise ValidationError(
                        "This question does not belong to the attempted quiz",
                        question_id=question_id,
                        quiz_id=attempt.quiz_id,
                    )

                if uow.answers.find(attempt_id, question_id) is not None:
                    raise ConflictError(
                        "Answer for this question already submitted", question_id=question_id
                    )

                total = self.catalog.count_questions(attempt.quiz_id)
                is_correct = answers_match(selected, question.correct_answer, self.match_mode)
                answer = uow.answers.add(
                    QuizAttemptAnswer(
                        attempt_id=attempt_id,
                        question_id=question_id,
                        question_order=question_order or 0,
                        selected_answer=selected,
                        is_correct=is_correct,
                    )
                )

                answered, correct = uow.answers.count_for_attempt(attempt_id)
                completed = False
                if total and answered >= total:
                    completed = uow.attempts.complete_if_in_progress(
                        attempt_id,
                        score=score_percent(correct, total),
                        total_questions=total,
                        correct_answers=correct,
                    )
                    if completed:
                        uow.attempts.refresh(attempt)

                uow.commit()

        logger.debug(
            "Answer {} recorded for attempt {} (correct={})", answer.id, attempt_id, is_correct
        )
        if completed:
            logger.info(
                "Attempt {} completed: score={} ({}/{})",
                attempt_id,
                attempt.score,
                attempt.correct_answers,
                attempt.total_questions,
            )
            self.scheduler.enqueue(attempt.user_id)

        return SubmitResult(is_correct=is_correct, answer=answer, attempt=attempt, completed=completed)
