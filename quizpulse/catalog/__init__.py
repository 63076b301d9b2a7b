"""Read-only adapters for the quiz/question and badge catalogs."""

from quizpulse.catalog.badges import BadgeAchievement, BadgeCatalog, BadgeInfo, SqlBadgeCatalog
from quizpulse.catalog.reader import CatalogReader, QuestionInfo, QuizInfo, SqlCatalogReader

__all__ = [
    "BadgeAchievement",
    "BadgeCatalog",
    "BadgeInfo",
    "CatalogReader",
    "QuestionInfo",
    "QuizInfo",
    "SqlBadgeCatalog",
    "SqlCatalogReader",
]
