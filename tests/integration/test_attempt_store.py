"""
Integration Tests for attempt reads, abandon, delete and bulk submission.

Runs against a file-backed SQLite database per test.
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from quizpulse.attempts.bulk import AnswerInput
from quizpulse.db.database import session_scope
from quizpulse.db.models import AttemptStatus, QuizAttempt, QuizAttemptAnswer
from quizpulse.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError

pytestmark = pytest.mark.integration


def count_rows(session_factory, model):
    with session_scope(session_factory) as session:
        return session.scalar(select(func.count()).select_from(model))


class TestAttemptReads:
    def test_get_includes_answers_with_questions(self, store, recorder, mcq_quiz, user_id):
        quiz_id, questions = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)
        recorder.submit(attempt.id, questions[1], ["B"], user_id, question_order=1)
        recorder.submit(attempt.id, questions[0], ["D"], user_id, question_order=0)

        payload = store.get(attempt.id, user_id).to_dict()

        assert payload["id"] == attempt.id
        assert [a["question_id"] for a in payload["answers"]] == questions[:2]
        assert payload["answers"][0]["question"]["content"] == "Question 1"
        assert payload["answers"][0]["question"]["correct_answer"] == ["A"]
        assert payload["answers"][0]["is_correct"] is False

    def test_get_other_users_attempt(self, store, mcq_quiz, user_id, other_user_id):
        quiz_id, _ = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)

        with pytest.raises(UnauthorizedError):
            store.get(attempt.id, other_user_id)

    def test_get_missing_attempt(self, store, user_id):
        with pytest.raises(NotFoundError):
            store.get(str(uuid4()), user_id)

    def test_list_only_returns_own_attempts(self, store, mcq_quiz, user_id, other_user_id):
        quiz_id, _ = mcq_quiz
        mine = [store.create_initial(quiz_id, user_id) for _ in range(2)]
        store.create_initial(quiz_id, other_user_id)

        listed = store.list_for_user(user_id)

        assert {a.id for a in listed} == {a.id for a in mine}


class TestAbandonAndDelete:
    def test_abandon(self, store, mcq_quiz, user_id):
        quiz_id, _ = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)

        abandoned = store.abandon(attempt.id, user_id)

        assert abandoned.status == AttemptStatus.ABANDONED
        assert abandoned.score is None

    def test_abandon_twice_conflicts(self, store, mcq_quiz, user_id):
        quiz_id, _ = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)
        store.abandon(attempt.id, user_id)

        with pytest.raises(ConflictError):
            store.abandon(attempt.id, user_id)

    def test_abandon_completed_conflicts(self, store, recorder, mcq_quiz, user_id):
        quiz_id, questions = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)
        for question_id, answer in zip(questions, "ABC"):
            recorder.submit(attempt.id, question_id, [answer], user_id)

        with pytest.raises(ConflictError):
            store.abandon(attempt.id, user_id)

        assert store.get(attempt.id, user_id).attempt.status == AttemptStatus.COMPLETED

    def test_abandon_other_users_attempt(self, store, mcq_quiz, user_id, other_user_id):
        quiz_id, _ = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)

        with pytest.raises(UnauthorizedError):
            store.abandon(attempt.id, other_user_id)

    def test_delete_removes_answers(self, store, recorder, mcq_quiz, user_id, session_factory):
        quiz_id, questions = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)
        recorder.submit(attempt.id, questions[0], ["A"], user_id)

        store.delete(attempt.id, user_id)

        with pytest.raises(NotFoundError):
            store.get(attempt.id, user_id)
        assert count_rows(session_factory, QuizAttemptAnswer) == 0

    def test_delete_other_users_attempt(self, store, mcq_quiz, user_id, other_user_id):
        quiz_id, _ = mcq_quiz
        attempt = store.create_initial(quiz_id, user_id)

        with pytest.raises(UnauthorizedError):
            store.delete(attempt.id, other_user_id)
        assert store.get(attempt.id, user_id).attempt.id == attempt.id


class TestBulkSubmission:
    def test_stores_completed_attempt_with_answers(
        self, bulk, store, mcq_quiz, user_id, scheduler
    ):
        quiz_id, questions = mcq_quiz

        attempt = bulk.submit_complete(
            quiz_id=quiz_id,
            user_id=user_id,
            score=67,
            total_questions=3,
            correct_answers=2,
            time_taken=95,
            answers=[
                AnswerInput(questions[0], ["A"], 0),
                AnswerInput(questions[1], ["X"], 1),
                AnswerInput(questions[2], "C", 2),
            ],
        )

        assert attempt.status == AttemptStatus.COMPLETED
        assert attempt.score == 67
        assert attempt.time_taken_seconds == 95
        assert attempt.completed_at is not None
        assert scheduler.calls == [user_id]

        detail = store.get(attempt.id, user_id)
        assert [a.is_correct for a in detail.answers] == [True, False, True]

    def test_foreign_question_rolls_back_everything(
        self, bulk, mcq_quiz, make_quiz, user_id, session_factory, scheduler
    ):
        quiz_id, questions = mcq_quiz
        _, foreign = make_quiz(topic="Geometry")

        with pytest.raises(ValidationError):
            bulk.submit_complete(
                quiz_id=quiz_id,
                user_id=user_id,
                score=100,
                total_questions=3,
                correct_answers=3,
                time_taken=30,
                answers=[
                    AnswerInput(questions[0], ["A"]),
                    AnswerInput(foreign[0], ["A"]),
                ],
            )

        assert count_rows(session_factory, QuizAttempt) == 0
        assert count_rows(session_factory, QuizAttemptAnswer) == 0
        assert scheduler.calls == []

    def test_missing_question_rolls_back(self, bulk, mcq_quiz, user_id, session_factory):
        quiz_id, questions = mcq_quiz

        with pytest.raises(NotFoundError):
            bulk.submit_complete(
                quiz_id, user_id, 50, 2, 1, 10,
                [AnswerInput(questions[0], ["A"]), AnswerInput(str(uuid4()), ["A"])],
            )

        assert count_rows(session_factory, QuizAttempt) == 0

    def test_duplicate_question_rejected(self, bulk, mcq_quiz, user_id, session_factory):
        quiz_id, questions = mcq_quiz

        with pytest.raises(ValidationError):
            bulk.submit_complete(
                quiz_id, user_id, 50, 2, 1, 10,
                [AnswerInput(questions[0], ["A"]), AnswerInput(questions[0], ["B"])],
            )

        assert count_rows(session_factory, QuizAttempt) == 0

    def test_results_contradicting_answers_roll_back(
        self, bulk, mcq_quiz, user_id, session_factory, scheduler
    ):
        """Every answer is wrong, so a reported 3/3 at 90 is rejected."""
        quiz_id, questions = mcq_quiz

        with pytest.raises(ValidationError) as exc_info:
            bulk.submit_complete(
                quiz_id, user_id, 90, 3, 3, 20,
                [AnswerInput(q, ["Z"], i) for i, q in enumerate(questions)],
            )

        assert exc_info.value.details["fields"] == ["correct_answers", "score"]
        assert count_rows(session_factory, QuizAttempt) == 0
        assert count_rows(session_factory, QuizAttemptAnswer) == 0
        assert scheduler.calls == []

    def test_wrong_total_is_rejected(self, bulk, mcq_quiz, user_id, session_factory):
        quiz_id, questions = mcq_quiz

        with pytest.raises(ValidationError):
            bulk.submit_complete(
                quiz_id, user_id, 100, 1, 1, 5, [AnswerInput(questions[0], ["A"])]
            )

        assert count_rows(session_factory, QuizAttempt) == 0

    def test_missing_results_are_graded(self, bulk, mcq_quiz, user_id):
        """Unanswered questions count toward the total as incorrect."""
        quiz_id, questions = mcq_quiz

        attempt = bulk.submit_complete(
            quiz_id, user_id, None, None, None, None,
            [AnswerInput(questions[0], ["A"]), AnswerInput(questions[1], ["B"])],
        )

        assert attempt.total_questions == 3
        assert attempt.correct_answers == 2
        assert attempt.score == 67
        assert attempt.score == round(attempt.correct_answers / attempt.total_questions * 100)

    def test_unknown_quiz(self, bulk, user_id):
        with pytest.raises(NotFoundError):
            bulk.submit_complete(str(uuid4()), user_id, 0, 0, 0, 0, [])
