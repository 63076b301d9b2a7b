"""
Integration Tests for unit-of-work error translation.

Only the answer uniqueness constraint means "already answered"; any other
integrity failure on the answers table is a storage failure.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from quizpulse.db.models import QuizAttemptAnswer
from quizpulse.db.unit_of_work import _integrity_to_error
from quizpulse.errors import ConflictError, InternalError

pytestmark = pytest.mark.integration


def answer(attempt_id, question_id):
    return QuizAttemptAnswer(
        attempt_id=attempt_id,
        question_id=question_id,
        selected_answer=["A"],
        is_correct=True,
    )


class TestIntegrityTranslation:
    def test_duplicate_answer_is_conflict(self, uow_factory, store, mcq_quiz, user_id):
        quiz_id, questions = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)

        with pytest.raises(ConflictError):
            with uow_factory() as uow:
                uow.answers.add(answer(attempt.id, questions[0]))
                uow.answers.add(answer(attempt.id, questions[0]))
                uow.commit()

    def test_missing_attempt_is_internal_error(self, uow_factory, mcq_quiz):
        """Foreign key failure, e.g. the attempt was deleted concurrently."""
        _, questions = mcq_quiz

        with pytest.raises(InternalError):
            with uow_factory() as uow:
                uow.answers.add(answer(str(uuid4()), questions[0]))
                uow.commit()

    @pytest.mark.parametrize(
        "message,expected",
        [
            (
                'duplicate key value violates unique constraint "uq_attempt_question"',
                ConflictError,
            ),
            (
                "UNIQUE constraint failed: quiz_attempt_answers.attempt_id, "
                "quiz_attempt_answers.question_id",
                ConflictError,
            ),
            (
                'insert or update on table "quiz_attempt_answers" violates foreign key '
                'constraint "quiz_attempt_answers_attempt_id_fkey"',
                InternalError,
            ),
            ("NOT NULL constraint failed: quiz_attempt_answers.is_correct", InternalError),
        ],
    )
    def test_driver_messages(self, message, expected):
        error = _integrity_to_error(IntegrityError("INSERT", {}, Exception(message)))

        assert isinstance(error, expected)
