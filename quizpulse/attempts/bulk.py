"""
BulkAttemptSubmitter: store a finished attempt and all of its answers at once.

Used when the client buffers answers locally and submits at the end of the
quiz. Everything happens in one transaction; if any answer fails validation
no attempt and no answer is persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from loguru import logger

from quizpulse.attempts.grading import (
    MATCH_ORDERED,
    answers_match,
    normalize_answer,
    require_uuid,
    score_percent,
)
from quizpulse.catalog.reader import CatalogReader
from quizpulse.db.models import AttemptStatus, QuizAttempt, QuizAttemptAnswer
from quizpulse.db.models.base import utcnow
from quizpulse.db.unit_of_work import UnitOfWorkFactory
from quizpulse.errors import NotFoundError, ValidationError
from quizpulse.insights.worker import InsightScheduler


@dataclass(frozen=True)
class AnswerInput:
    question_id: str
    selected_answer: Sequence[str] | str
    question_order: int = 0


class BulkAttemptSubmitter:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        catalog: CatalogReader,
        scheduler: InsightScheduler,
        match_mode: str = MATCH_ORDERED,
    ):
        self.uow_factory = uow_factory
        self.catalog = catalog
        self.scheduler = scheduler
        self.match_mode = match_mode

    def submit_complete(
        self,
        quiz_id: str,
        user_id: str,
        score: int | None,
        total_questions: int | None,
        correct_answers: int | None,
        time_taken: int | None,
        answers: Iterable[AnswerInput],
    ) -> QuizAttempt:
        """
        Create a Completed attempt with all its answers in one transaction.

        Answers are graded here. total_questions is the quiz's question
        count, correct_answers the number of correct graded answers, and score
        their rounded percentage; reported values must agree with them, and
        values left as None are filled in.

        Raises:
            ValidationError: malformed ids, duplicate questions, a question
                from another quiz, or reported results that disagree with
                the graded answers
            NotFoundError: quiz or a referenced question missing
        """
        quiz_id = require_uuid(quiz_id, "quiz ID")
        if self.catalog.get_quiz(quiz_id) is None:
            raise NotFoundError("Quiz not found", quiz_id=quiz_id)

        answers = list(answers)
        total = self.catalog.count_questions(quiz_id)

        with self.uow_factory() as uow:
            attempt = uow.attempts.add(
                QuizAttempt(
                    user_id=user_id,
                    quiz_id=quiz_id,
                    status=AttemptStatus.COMPLETED,
                    time_taken_seconds=time_taken,
                    completed_at=utcnow(),
                )
            )

            records: list[QuizAttemptAnswer] = []
            seen: set[str] = set()
            for item in answers:
                question_id = require_uuid(item.question_id, "question ID")
                if question_id in seen:
                    raise ValidationError(
                        "Question answered more than once", question_id=question_id
                    )
                seen.add(question_id)

                question = self.catalog.get_question(question_id)
                if question is None:
                    raise NotFoundError(
                        f"Question not found for id: {question_id}", question_id=question_id
                    )
                if question.quiz_id != quiz_id:
                    raise ValidationError(
                        f"Question {question_id} does not belong to the specified quiz",
                        question_id=question_id,
                        quiz_id=quiz_id,
                    )

                selected = normalize_answer(item.selected_answer)
                records.append(
                    QuizAttemptAnswer(
                        attempt_id=attempt.id,
                        question_id=question_id,
                        question_order=item.question_order or 0,
                        selected_answer=selected,
                        is_correct=answers_match(
                            selected, question.correct_answer, self.match_mode
                        ),
                    )
                )

            correct = sum(1 for r in records if r.is_correct)
            graded = {
                "score": score_percent(correct, total),
                "total_questions": total,
                "correct_answers": correct,
            }
            reported = {
                "score": score,
                "total_questions": total_questions,
                "correct_answers": correct_answers,
            }
            mismatched = sorted(
                name for name, value in reported.items()
                if value is not None and value != graded[name]
            )
            if mismatched:
                raise ValidationError(
                    "Reported results do not match the graded answers",
                    fields=mismatched,
                    graded=graded,
                )

            attempt.score = graded["score"]
            attempt.total_questions = total
            attempt.correct_answers = correct
            uow.answers.add_all(records)
            uow.commit()

        logger.info(
            "Bulk attempt {} stored for user {} on quiz {} ({} answers)",
            attempt.id,
            user_id,
            quiz_id,
            len(records),
        )
        self.scheduler.enqueue(user_id)
        return attempt
