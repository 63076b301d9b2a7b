"""
Explicit object graph for the API and CLI.

Nothing in quizpulse reaches for a global engine or session; callers build a
Services container once and pass its parts around.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import Settings
from quizpulse.attempts.bulk import BulkAttemptSubmitter
from quizpulse.attempts.locks import AttemptLocks
from quizpulse.attempts.recorder import AnswerRecorder
from quizpulse.attempts.store import AttemptStore
from quizpulse.catalog.badges import BadgeCatalog, SqlBadgeCatalog
from quizpulse.catalog.reader import CatalogReader, SqlCatalogReader
from quizpulse.dashboard.projector import DashboardProjector
from quizpulse.db.database import create_db_engine, create_session_factory
from quizpulse.db.unit_of_work import UnitOfWorkFactory
from quizpulse.insights.engine import InsightEngine
from quizpulse.insights.worker import InlineInsightScheduler, InsightScheduler, InsightWorkerPool


@dataclass
class Services:
    engine: Engine
    session_factory: sessionmaker[Session]
    uow_factory: UnitOfWorkFactory
    catalog: CatalogReader
    badges: BadgeCatalog
    insight_engine: InsightEngine
    scheduler: InsightScheduler
    attempts: AttemptStore
    recorder: AnswerRecorder
    bulk: BulkAttemptSubmitter
    dashboard: DashboardProjector

    def start(self) -> None:
        if isinstance(self.scheduler, InsightWorkerPool):
            self.scheduler.start()

    def stop(self) -> None:
        if isinstance(self.scheduler, InsightWorkerPool):
            self.scheduler.stop()
        self.engine.dispose()


def build_services(
    settings: Settings,
    engine: Engine | None = None,
    catalog: CatalogReader | None = None,
    badges: BadgeCatalog | None = None,
    inline_insights: bool = False,
    scheduler: InsightScheduler | None = None,
) -> Services:
    """
    Wire every component from settings.

    Args:
        settings: Application settings
        engine: Existing engine (default: created from settings.database_url)
        catalog: Catalog reader (default: SQL reader on the same database)
        badges: Badge catalog (default: SQL catalog on the same database)
        inline_insights: Run insight jobs synchronously instead of on the pool
        scheduler: Explicit scheduler, overriding inline_insights
    """
    engine = engine or create_db_engine(settings.database_url, echo=settings.log_level == "DEBUG")
    session_factory = create_session_factory(engine)
    uow_factory = UnitOfWorkFactory(session_factory)
    catalog = catalog or SqlCatalogReader(session_factory)
    badges = badges or SqlBadgeCatalog(session_factory)

    insights = settings.get_insight_config()
    insight_engine = InsightEngine(
        uow_factory,
        catalog,
        attempt_window=insights["attempt_window"],
        recent_window=insights["recent_window"],
        min_answers=insights["min_answers"],
        weak_threshold=insights["weak_threshold"],
        strong_threshold=insights["strong_threshold"],
    )

    if scheduler is None and inline_insights:
        scheduler = InlineInsightScheduler(runner=insight_engine.run)
    elif scheduler is None:
        scheduler = InsightWorkerPool(
            runner=insight_engine.run,
            workers=settings.insight_workers,
            queue_size=settings.insight_queue_size,
            max_retries=settings.insight_max_retries,
            backoff_seconds=settings.insight_retry_backoff_seconds,
        )

    return Services(
        engine=engine,
        session_factory=session_factory,
        uow_factory=uow_factory,
        catalog=catalog,
        badges=badges,
        insight_engine=insight_engine,
        scheduler=scheduler,
        attempts=AttemptStore(uow_factory, catalog),
        recorder=AnswerRecorder(
            uow_factory,
            catalog,
            scheduler,
            locks=AttemptLocks(),
            match_mode=settings.answer_match_mode,
        ),
        bulk=BulkAttemptSubmitter(
            uow_factory, catalog, scheduler, match_mode=settings.answer_match_mode
        ),
        dashboard=DashboardProjector(
            uow_factory, badges, history_limit=settings.dashboard_history_limit
        ),
    )
