"""
Catalog models: quizzes, questions and badges.

These tables belong to the catalog service. This package only reads them;
they are mapped here so the catalog and badge readers can query them and so
tests can seed them.

Question types:
- MCQ: one correct option, stored as a one-element list
- MULTI_SELECT: several correct options, stored in catalog order
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableJSON, new_id, utcnow

DIFFICULTIES = ("EASY", "MEDIUM", "HARD")
QUESTION_TYPES = ("MCQ", "MULTI_SELECT")


class Quiz(Base):
    """A quiz on a single topic at a single difficulty."""

    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    topic: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    def __repr__(self) -> str:
        return f"<Quiz(topic={self.topic}, difficulty={self.difficulty})>"


class Question(Base):
    """A question belonging to exactly one quiz."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    quiz_id: Mapped[str] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(16), nullable=False, default="MCQ")
    options: Mapped[list] = mapped_column(PortableJSON, nullable=False, default=list)
    correct_answer: Mapped[list] = mapped_column(PortableJSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    def __repr__(self) -> str:
        return f"<Question(quiz={self.quiz_id}, type={self.question_type})>"


class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    min_score_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)


class UserBadge(Base):
    """A badge awarded to a user. Awarding is done by the badge service."""

    __tablename__ = "user_badges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    badge_id: Mapped[str] = mapped_column(String(36), nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
        Index("idx_user_badges_achieved", "user_id", "achieved_at"),
    )
