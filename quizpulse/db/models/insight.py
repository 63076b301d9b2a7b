"""
Insight snapshot model.

One row per user holding the latest topic analytics. Each recomputation
overwrites every field; nothing from the previous snapshot is merged.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableJSON, new_id, utcnow


class InsightSnapshot(Base):
    __tablename__ = "insight_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # topic -> 0..100
    topic_proficiency: Mapped[dict] = mapped_column(PortableJSON, nullable=False, default=dict)
    confidence_scores: Mapped[dict] = mapped_column(PortableJSON, nullable=False, default=dict)

    weak_topics: Mapped[list] = mapped_column(PortableJSON, nullable=False, default=list)
    strong_topics: Mapped[list] = mapped_column(PortableJSON, nullable=False, default=list)

    last_updated: Mapped[datetime] = mapped_column(default=utcnow)

    def __repr__(self) -> str:
        return f"<InsightSnapshot(user={self.user_id}, topics={len(self.topic_proficiency or {})})>"

    @property
    def weak_topics_data(self) -> dict[str, int]:
        """Weak topics mapped to their proficiency, as the dashboard charts them."""
        proficiency = self.topic_proficiency or {}
        return {topic: proficiency[topic] for topic in self.weak_topics or [] if topic in proficiency}
