"""Badge catalog: badge definitions and the badges a user has been awarded."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from quizpulse.catalog.reader import catalog_session
from quizpulse.db.models import Badge, UserBadge


@dataclass(frozen=True)
class BadgeInfo:
    id: str
    name: str
    description: str
    min_score_threshold: int


@dataclass(frozen=True)
class BadgeAchievement:
    id: str
    user_id: str
    badge_id: str
    achieved_at: datetime


class BadgeCatalog(Protocol):
    def list_by_ids(self, badge_ids: Iterable[str]) -> list[BadgeInfo]: ...

    def list_user_badges(self, user_id: str) -> list[BadgeAchievement]: ...


class SqlBadgeCatalog:
    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def list_by_ids(self, badge_ids: Iterable[str]) -> list[BadgeInfo]:
        ids = list(set(badge_ids))
        if not ids:
            return []
        with catalog_session(self.session_factory) as session:
            rows = session.scalars(select(Badge).where(Badge.id.in_(ids)))
            return [
                BadgeInfo(
                    id=row.id,
                    name=row.name,
                    description=row.description,
                    min_score_threshold=row.min_score_threshold,
                )
                for row in rows
            ]

    def list_user_badges(self, user_id: str) -> list[BadgeAchievement]:
        """Awarded badges, most recent first."""
        with catalog_session(self.session_factory) as session:
            stmt = (
                select(UserBadge)
                .where(UserBadge.user_id == user_id)
                .order_by(UserBadge.achieved_at.desc())
            )
            return [
                BadgeAchievement(
                    id=row.id,
                    user_id=row.user_id,
                    badge_id=row.badge_id,
                    achieved_at=row.achieved_at,
                )
                for row in session.scalars(stmt)
            ]
