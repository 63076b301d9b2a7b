"""
Attempt models.

Implements:
- QuizAttempt: one user's run through one quiz
- QuizAttemptAnswer: one answer to one question within an attempt

Status lifecycle (one-directional):
    InProgress -> Completed
    InProgress -> Abandoned

score, total_questions, correct_answers and completed_at stay NULL until the
attempt is Completed and are written together with the status change.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, PortableJSON, new_id, utcnow


class AttemptStatus:
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    ABANDONED = "Abandoned"

    ALL = (IN_PROGRESS, COMPLETED, ABANDONED)


class QuizAttempt(Base):
    """A user's attempt at a quiz."""

    __tablename__ = "quiz_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    quiz_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=AttemptStatus.IN_PROGRESS
    )

    # Scoring (NULL until Completed)
    score: Mapped[int | None] = mapped_column(Integer)
    total_questions: Mapped[int | None] = mapped_column(Integer)
    correct_answers: Mapped[int | None] = mapped_column(Integer)
    time_taken_seconds: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column()

    answers: Mapped[list["QuizAttemptAnswer"]] = relationship(
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="QuizAttemptAnswer.question_order",
    )

    __table_args__ = (
        Index("idx_attempts_user_status", "user_id", "status", "completed_at"),
    )

    def __repr__(self) -> str:
        return f"<QuizAttempt(id={self.id}, status={self.status}, score={self.score})>"

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS

    @property
    def finished_at(self) -> datetime:
        """Completion time, falling back to creation time."""
        return self.completed_at or self.created_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "quiz_id": self.quiz_id,
            "status": self.status,
            "score": self.score,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "time_taken_seconds": self.time_taken_seconds,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
        }


class QuizAttemptAnswer(Base):
    """An answer recorded for one question in one attempt. Immutable once written."""

    __tablename__ = "quiz_attempt_answers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    question_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    selected_answer: Mapped[list] = mapped_column(PortableJSON, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    attempt: Mapped[QuizAttempt] = relationship(back_populates="answers")

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),
    )

    def __repr__(self) -> str:
        return f"<QuizAttemptAnswer(attempt={self.attempt_id}, question={self.question_id}, correct={self.is_correct})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attempt_id": self.attempt_id,
            "question_id": self.question_id,
            "question_order": self.question_order,
            "selected_answer": list(self.selected_answer),
            "is_correct": self.is_correct,
            "created_at": self.created_at,
        }
