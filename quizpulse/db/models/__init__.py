# SQLAlchemy models
from .attempt import AttemptStatus, QuizAttempt, QuizAttemptAnswer
from .base import Base
from .catalog import DIFFICULTIES, QUESTION_TYPES, Badge, Question, Quiz, UserBadge
from .insight import InsightSnapshot

__all__ = [
    # Base
    "Base",
    # Attempts
    "AttemptStatus",
    "QuizAttempt",
    "QuizAttemptAnswer",
    # Insights
    "InsightSnapshot",
    # Catalog (read-only here)
    "DIFFICULTIES",
    "QUESTION_TYPES",
    "Quiz",
    "Question",
    "Badge",
    "UserBadge",
]
