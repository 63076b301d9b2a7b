"""Dashboard router: recent performance, topic insights and badges."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from quizpulse.api.deps import get_current_user, get_services, to_http_exception
from quizpulse.errors import QuizPulseError
from quizpulse.services import Services

router = APIRouter()


class PerformanceEntryResponse(BaseModel):
    id: str
    quiz_id: str
    score: Optional[int]
    correct_answers: Optional[int]
    total_questions: Optional[int]
    date: datetime


class BadgeResponse(BaseModel):
    id: str
    badge_id: str
    name: str
    description: str
    achieved_at: datetime


class DashboardResponse(BaseModel):
    performance_history: List[PerformanceEntryResponse]
    topic_proficiency: Dict[str, int]
    weak_topics: Dict[str, int]
    strong_topics: List[str]
    confidence_scores: Dict[str, int]
    badges: List[BadgeResponse]
    insight_last_updated: Optional[datetime]


@router.get("/{user_id}", response_model=DashboardResponse)
def get_dashboard(
    user_id: str,
    caller_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> DashboardResponse:
    """Dashboard for the caller; other users' dashboards are refused."""
    try:
        dashboard = services.dashboard.get_dashboard(user_id, caller_id)
    except QuizPulseError as e:
        raise to_http_exception(e) from e
    return DashboardResponse(**dashboard.to_dict())
