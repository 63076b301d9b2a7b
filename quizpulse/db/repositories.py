"""
Repositories over a SQLAlchemy session.

Each repository is bound to the session of the current unit of work. They
never commit; committing is the unit of work's job.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from quizpulse.db.models import AttemptStatus, InsightSnapshot, QuizAttempt, QuizAttemptAnswer
from quizpulse.db.models.base import utcnow


class AttemptRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, attempt: QuizAttempt) -> QuizAttempt:
        self.session.add(attempt)
        self.session.flush()
        return attempt

    def get(self, attempt_id: str) -> QuizAttempt | None:
        return self.session.get(QuizAttempt, attempt_id)

    def get_for_update(self, attempt_id: str) -> QuizAttempt | None:
        """Load the attempt with a row lock (no-op on SQLite) and fresh state."""
        stmt = (
            select(QuizAttempt)
            .where(QuizAttempt.id == attempt_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.scalars(stmt).first()

    def refresh(self, attempt: QuizAttempt) -> QuizAttempt:
        """Reload after a bulk UPDATE, which bypasses the identity map."""
        self.session.refresh(attempt)
        return attempt

    def list_for_user(self, user_id: str) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttempt)
            .where(QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def recent_completed(self, user_id: str, limit: int) -> list[QuizAttempt]:
        """Most recently completed attempts first."""
        stmt = (
            select(QuizAttempt)
            .where(
                QuizAttempt.user_id == user_id,
                QuizAttempt.status == AttemptStatus.COMPLETED,
            )
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def complete_if_in_progress(
        self,
        attempt_id: str,
        score: int,
        total_questions: int,
        correct_answers: int,
        completed_at: datetime | None = None,
    ) -> bool:
        """
        Compare-and-swap InProgress -> Completed.

        Returns:
            True if this call performed the transition, False if the attempt
            had already left InProgress.
        """
        stmt = (
            update(QuizAttempt)
            .where(
                QuizAttempt.id == attempt_id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS,
            )
            .values(
                status=AttemptStatus.COMPLETED,
                score=score,
                total_questions=total_questions,
                correct_answers=correct_answers,
                completed_at=completed_at or utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def abandon_if_in_progress(self, attempt_id: str) -> bool:
        stmt = (
            update(QuizAttempt)
            .where(
                QuizAttempt.id == attempt_id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS,
            )
            .values(status=AttemptStatus.ABANDONED)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def delete(self, attempt: QuizAttempt) -> None:
        self.session.execute(
            delete(QuizAttemptAnswer).where(QuizAttemptAnswer.attempt_id == attempt.id)
        )
        self.session.delete(attempt)
        self.session.flush()


class AnswerRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, answer: QuizAttemptAnswer) -> QuizAttemptAnswer:
        self.session.add(answer)
        self.session.flush()
        return answer

    def add_all(self, answers: Iterable[QuizAttemptAnswer]) -> None:
        self.session.add_all(list(answers))
        self.session.flush()

    def find(self, attempt_id: str, question_id: str) -> QuizAttemptAnswer | None:
        stmt = select(QuizAttemptAnswer).where(
            QuizAttemptAnswer.attempt_id == attempt_id,
            QuizAttemptAnswer.question_id == question_id,
        )
        return self.session.scalars(stmt).first()

    def list_for_attempt(self, attempt_id: str) -> list[QuizAttemptAnswer]:
        stmt = (
            select(QuizAttemptAnswer)
            .where(QuizAttemptAnswer.attempt_id == attempt_id)
            .order_by(QuizAttemptAnswer.question_order, QuizAttemptAnswer.created_at)
        )
        return list(self.session.scalars(stmt))

    def list_for_attempts(self, attempt_ids: list[str]) -> list[QuizAttemptAnswer]:
        if not attempt_ids:
            return []
        stmt = select(QuizAttemptAnswer).where(QuizAttemptAnswer.attempt_id.in_(attempt_ids))
        return list(self.session.scalars(stmt))

    def count_for_attempt(self, attempt_id: str) -> tuple[int, int]:
        """Return (answered, correct) for an attempt."""
        stmt = select(
            func.count(QuizAttemptAnswer.id),
            func.count(QuizAttemptAnswer.id).filter(QuizAttemptAnswer.is_correct.is_(True)),
        ).where(QuizAttemptAnswer.attempt_id == attempt_id)
        answered, correct = self.session.execute(stmt).one()
        return int(answered or 0), int(correct or 0)


class InsightRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: str) -> InsightSnapshot | None:
        stmt = select(InsightSnapshot).where(InsightSnapshot.user_id == user_id)
        return self.session.scalars(stmt).first()

    def replace(
        self,
        user_id: str,
        topic_proficiency: dict[str, int],
        confidence_scores: dict[str, int],
        weak_topics: list[str],
        strong_topics: list[str],
        last_updated: datetime | None = None,
    ) -> InsightSnapshot:
        """Overwrite the user's snapshot, creating it on first run."""
        snapshot = self.get(user_id)
        if snapshot is None:
            snapshot = InsightSnapshot(user_id=user_id)
            self.session.add(snapshot)

        snapshot.topic_proficiency = dict(topic_proficiency)
        snapshot.confidence_scores = dict(confidence_scores)
        snapshot.weak_topics = list(weak_topics)
        snapshot.strong_topics = list(strong_topics)
        snapshot.last_updated = last_updated or utcnow()
        self.session.flush()
        return snapshot
