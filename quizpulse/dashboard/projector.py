"""
Dashboard Projector: read-only view of a user's progress.

Combines:
- Recent performance history (completed attempts)
- The latest insight snapshot (topic proficiency, weak/strong topics)
- Badge achievements, looked up in the badge catalog for display

A user without a snapshot yet gets empty maps and lists, never an error.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from quizpulse.catalog.badges import BadgeCatalog
from quizpulse.db.unit_of_work import UnitOfWorkFactory
from quizpulse.errors import UnauthorizedError


@dataclass
class PerformanceEntry:
    id: str
    quiz_id: str
    score: int | None
    correct_answers: int | None
    total_questions: int | None
    date: datetime


@dataclass
class BadgeEntry:
    id: str
    badge_id: str
    name: str
    description: str
    achieved_at: datetime


@dataclass
class Dashboard:
    performance_history: list[PerformanceEntry] = field(default_factory=list)
    topic_proficiency: dict[str, int] = field(default_factory=dict)
    weak_topics: dict[str, int] = field(default_factory=dict)
    strong_topics: list[str] = field(default_factory=list)
    confidence_scores: dict[str, int] = field(default_factory=dict)
    badges: list[BadgeEntry] = field(default_factory=list)
    insight_last_updated: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def sanitize_score(value: object) -> int:
    """Scores must be numbers in 0-100; anything else is reported as 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if math.isnan(value) or value < 0 or value > 100:
        return 0
    return int(value)


class DashboardProjector:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        badges: BadgeCatalog,
        history_limit: int = 10,
    ):
        self.uow_factory = uow_factory
        self.badges = badges
        self.history_limit = history_limit

    def get_dashboard(self, requested_user_id: str, caller_user_id: str) -> Dashboard:
        if requested_user_id != caller_user_id:
            raise UnauthorizedError("Unauthorized. You can only access your own dashboard.")

        with self.uow_factory() as uow:
            attempts = uow.attempts.recent_completed(requested_user_id, self.history_limit)
            snapshot = uow.insights.get(requested_user_id)

        dashboard = Dashboard(
            performance_history=[
                PerformanceEntry(
                    id=a.id,
                    quiz_id=a.quiz_id,
                    score=a.score,
                    correct_answers=a.correct_answers,
                    total_questions=a.total_questions,
                    date=a.finished_at,
                )
                for a in attempts
            ],
            badges=self._badge_entries(requested_user_id),
        )

        if snapshot is not None:
            dashboard.topic_proficiency = {
                topic: sanitize_score(score)
                for topic, score in (snapshot.topic_proficiency or {}).items()
            }
            dashboard.weak_topics = {
                topic: sanitize_score(score) for topic, score in snapshot.weak_topics_data.items()
            }
            dashboard.strong_topics = list(snapshot.strong_topics or [])
            dashboard.confidence_scores = {
                topic: sanitize_score(score)
                for topic, score in (snapshot.confidence_scores or {}).items()
            }
            dashboard.insight_last_updated = snapshot.last_updated
        else:
            logger.debug("No insight snapshot yet for user {}", requested_user_id)

        return dashboard

    def _badge_entries(self, user_id: str) -> list[BadgeEntry]:
        achievements = self.badges.list_user_badges(user_id)
        if not achievements:
            return []

        details = {b.id: b for b in self.badges.list_by_ids(a.badge_id for a in achievements)}
        entries = []
        for achievement in achievements:
            badge = details.get(achievement.badge_id)
            entries.append(
                BadgeEntry(
                    id=achievement.id,
                    badge_id=achievement.badge_id,
                    name=badge.name if badge else "Unknown Badge",
                    description=badge.description if badge else "",
                    achieved_at=achievement.achieved_at,
                )
            )
        return entries
