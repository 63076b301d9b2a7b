"""
Insight Engine: per-topic proficiency and confidence from attempt history.

Calculates, for each topic a user has answered enough questions on:
- proficiency: difficulty-weighted percentage correct
- confidence: proficiency blended with recent performance and trend
- weak / strong classification

Difficulty weights (harder questions count more):
    EASY   1.0
    MEDIUM 1.5
    HARD   2.0

Confidence formula:
    60% x proficiency +
    30% x recent score (most recent answers on the topic) +
    10% x trend (recent score - older score, 0 without enough older answers)
clamped to 0-100.
With fewer than 3 recent answers, confidence is the proficiency itself.

The computation (compute_topic_insights) is pure; InsightEngine loads the
history, runs it, and replaces the user's snapshot.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from quizpulse.attempts.grading import clamp, round_half_up
from quizpulse.catalog.reader import CatalogReader
from quizpulse.db.models import InsightSnapshot
from quizpulse.db.unit_of_work import UnitOfWorkFactory

DIFFICULTY_WEIGHTS = {
    "EASY": 1.0,
    "MEDIUM": 1.5,
    "HARD": 2.0,
}


def difficulty_weight(difficulty: str | None) -> float:
    return DIFFICULTY_WEIGHTS.get((difficulty or "").upper(), 1.0)


@dataclass(frozen=True)
class AnswerObservation:
    """One graded answer joined to its quiz's topic and difficulty."""

    topic: str
    difficulty: str
    is_correct: bool
    timestamp: datetime
    question_order: int = 0

    @property
    def weight(self) -> float:
        return difficulty_weight(self.difficulty)


@dataclass
class TopicInsight:
    topic: str
    answers: int
    proficiency: int
    recent_score: int
    trend: int
    confidence: int


@dataclass
class InsightResult:
    topics: dict[str, TopicInsight] = field(default_factory=dict)
    weak_topics: list[str] = field(default_factory=list)
    strong_topics: list[str] = field(default_factory=list)

    @property
    def topic_proficiency(self) -> dict[str, int]:
        return {name: t.proficiency for name, t in self.topics.items()}

    @property
    def confidence_scores(self) -> dict[str, int]:
        return {name: t.confidence for name, t in self.topics.items()}


def weighted_score(observations: Sequence[AnswerObservation]) -> int:
    """Difficulty-weighted percentage correct, 0 for an empty sequence."""
    total = sum(o.weight for o in observations)
    if total <= 0:
        return 0
    correct = sum(o.weight for o in observations if o.is_correct)
    return round_half_up(correct / total * 100)


def compute_topic_insights(
    observations: Iterable[AnswerObservation],
    recent_window: int = 10,
    min_answers: int = 3,
    weak_threshold: int = 60,
    strong_threshold: int = 80,
) -> InsightResult:
    """
    Aggregate graded answers into per-topic insights.

    Args:
        observations: Graded answers from the user's recent attempts
        recent_window: Answers per topic counted as "recent" for confidence
        min_answers: Topics with fewer graded answers are left out
        weak_threshold: Proficiency below this is weak
        strong_threshold: Proficiency at or above this is strong

    Returns:
        InsightResult with topics in alphabetical order
    """
    by_topic: dict[str, list[AnswerObservation]] = defaultdict(list)
    for obs in observations:
        if obs.topic:
            by_topic[obs.topic].append(obs)

    result = InsightResult()
    for topic in sorted(by_topic):
        history = sorted(by_topic[topic], key=lambda o: (o.timestamp, o.question_order))
        if len(history) < min_answers:
            continue

        proficiency = weighted_score(history)

        recent = history[-recent_window:]
        older = history[: max(len(history) - recent_window, 0)]
        recent_score = weighted_score(recent)
        trend = recent_score - weighted_score(older) if len(older) >= 3 else 0

        if len(recent) >= 3:
            confidence = clamp(
                round_half_up(proficiency * 0.6 + recent_score * 0.3 + trend * 0.1)
            )
        else:
            confidence = proficiency

        result.topics[topic] = TopicInsight(
            topic=topic,
            answers=len(history),
            proficiency=proficiency,
            recent_score=recent_score,
            trend=trend,
            confidence=confidence,
        )
        if proficiency < weak_threshold:
            result.weak_topics.append(topic)
        elif proficiency >= strong_threshold:
            result.strong_topics.append(topic)

    return result


class InsightEngine:
    """Recomputes and stores a user's insight snapshot."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        catalog: CatalogReader,
        attempt_window: int = 20,
        recent_window: int = 10,
        min_answers: int = 3,
        weak_threshold: int = 60,
        strong_threshold: int = 80,
    ):
        self.uow_factory = uow_factory
        self.catalog = catalog
        self.attempt_window = attempt_window
        self.recent_window = recent_window
        self.min_answers = min_answers
        self.weak_threshold = weak_threshold
        self.strong_threshold = strong_threshold

    def collect_observations(self, user_id: str) -> list[AnswerObservation]:
        """Join the recent completed attempts' answers to topic and difficulty."""
        with self.uow_factory() as uow:
            attempts = uow.attempts.recent_completed(user_id, self.attempt_window)
            answers = uow.answers.list_for_attempts([a.id for a in attempts])

        if not attempts:
            return []

        finished = {a.id: a.finished_at for a in attempts}
        questions = self.catalog.get_questions(a.question_id for a in answers)
        quizzes = self.catalog.get_quizzes(q.quiz_id for q in questions.values())

        observations = []
        skipped = 0
        for answer in answers:
            question = questions.get(answer.question_id)
            quiz = quizzes.get(question.quiz_id) if question else None
            if quiz is None or not quiz.topic:
                skipped += 1
                continue
            observations.append(
                AnswerObservation(
                    topic=quiz.topic,
                    difficulty=quiz.difficulty,
                    is_correct=bool(answer.is_correct),
                    timestamp=finished[answer.attempt_id],
                    question_order=answer.question_order,
                )
            )

        if skipped:
            logger.debug("Skipped {} answers with no resolvable topic for user {}", skipped, user_id)
        return observations

    def compute(self, user_id: str) -> InsightResult | None:
        observations = self.collect_observations(user_id)
        if not observations:
            return None
        return compute_topic_insights(
            observations,
            recent_window=self.recent_window,
            min_answers=self.min_answers,
            weak_threshold=self.weak_threshold,
            strong_threshold=self.strong_threshold,
        )

    def run(self, user_id: str) -> InsightSnapshot | None:
        """
        Recompute and persist the user's snapshot.

        Returns:
            The new snapshot, or None when the user has no completed attempts
            (the previous snapshot, if any, is left untouched).
        """
        result = self.compute(user_id)
        if result is None:
            logger.debug("No completed attempts for user {}; insights unchanged", user_id)
            return None

        with self.uow_factory() as uow:
            snapshot = uow.insights.replace(
                user_id,
                topic_proficiency=result.topic_proficiency,
                confidence_scores=result.confidence_scores,
                weak_topics=result.weak_topics,
                strong_topics=result.strong_topics,
            )
            uow.commit()

        logger.info(
            "Insights updated for user {}: {} topics, {} weak, {} strong",
            user_id,
            len(result.topics),
            len(result.weak_topics),
            len(result.strong_topics),
        )
        return snapshot
