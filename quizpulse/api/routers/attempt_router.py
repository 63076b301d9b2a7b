"""
Attempt router.

Endpoints for:
- Starting an attempt and answering it question by question
- Submitting a finished attempt in one request
- Reading, abandoning and deleting the caller's attempts
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field

from quizpulse.api.deps import get_current_user, get_services, to_http_exception
from quizpulse.attempts.bulk import AnswerInput
from quizpulse.db.models import QuizAttempt
from quizpulse.errors import QuizPulseError
from quizpulse.services import Services

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class CreateAttemptRequest(BaseModel):
    quiz_id: str = Field(..., description="Quiz UUID")


class CreateAttemptResponse(BaseModel):
    attempt_id: str
    status: str


class SubmitAnswerRequest(BaseModel):
    question_id: str = Field(..., description="Question UUID")
    selected_answer: Union[List[str], str] = Field(
        ..., description="Selected option(s), in the order chosen"
    )
    question_order: Optional[int] = Field(0, ge=0, description="Position of the question in the quiz")


class SubmitAnswerResponse(BaseModel):
    is_correct: bool
    answer_id: str
    attempt_status: str
    score: Optional[int] = None


class BulkAnswer(BaseModel):
    question_id: str
    selected_answer: Union[List[str], str]
    question_order: Optional[int] = Field(0, ge=0)


class BulkAttemptRequest(BaseModel):
    quiz_id: str
    score: Optional[int] = Field(None, ge=0, le=100)
    total_questions: Optional[int] = Field(None, ge=0)
    correct_answers: Optional[int] = Field(None, ge=0)
    time_taken: Optional[int] = Field(None, ge=0, description="Seconds spent on the quiz")
    answers: List[BulkAnswer] = Field(default_factory=list)


class AttemptResponse(BaseModel):
    id: str
    user_id: str
    quiz_id: str
    status: str
    score: Optional[int]
    total_questions: Optional[int]
    correct_answers: Optional[int]
    time_taken_seconds: Optional[int]
    created_at: datetime
    completed_at: Optional[datetime]


def _attempt_response(attempt: QuizAttempt) -> AttemptResponse:
    return AttemptResponse(**attempt.to_dict())


# ========================================
# Endpoints
# ========================================


@router.post("/initial", response_model=CreateAttemptResponse, status_code=201)
def create_initial_attempt(
    request: CreateAttemptRequest,
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> CreateAttemptResponse:
    """Start an in-progress attempt to be answered one question at a time."""
    try:
        attempt = services.attempts.create_initial(request.quiz_id, user_id)
    except QuizPulseError as e:
        raise to_http_exception(e) from e
    return CreateAttemptResponse(attempt_id=attempt.id, status=attempt.status)


@router.post("/{attempt_id}/answers", response_model=SubmitAnswerResponse, status_code=201)
def submit_answer(
    attempt_id: str,
    request: SubmitAnswerRequest,
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> SubmitAnswerResponse:
    """Record one answer; the last answer completes and scores the attempt."""
    try:
        result = services.recorder.submit(
            attempt_id,
            request.question_id,
            request.selected_answer,
            user_id=user_id,
            question_order=request.question_order,
        )
    except QuizPulseError as e:
        raise to_http_exception(e) from e
    return SubmitAnswerResponse(
        is_correct=result.is_correct,
        answer_id=result.answer.id,
        attempt_status=result.attempt.status,
        score=result.attempt.score,
    )


@router.post("", response_model=AttemptResponse, status_code=201)
def submit_bulk_attempt(
    request: BulkAttemptRequest,
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> AttemptResponse:
    """Store a completed attempt with all of its answers, or nothing at all."""
    try:
        attempt = services.bulk.submit_complete(
            quiz_id=request.quiz_id,
            user_id=user_id,
            score=request.score,
            total_questions=request.total_questions,
            correct_answers=request.correct_answers,
            time_taken=request.time_taken,
            answers=[
                AnswerInput(
                    question_id=a.question_id,
                    selected_answer=a.selected_answer,
                    question_order=a.question_order or 0,
                )
                for a in request.answers
            ],
        )
    except QuizPulseError as e:
        logger.warning("Bulk attempt rejected for user {}: {}", user_id, e.message)
        raise to_http_exception(e) from e
    return _attempt_response(attempt)


@router.get("", response_model=List[AttemptResponse])
def list_attempts(
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> List[AttemptResponse]:
    """All of the caller's attempts, newest first."""
    return [_attempt_response(a) for a in services.attempts.list_for_user(user_id)]


@router.get("/{attempt_id}")
def get_attempt(
    attempt_id: str,
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """An attempt with its answers and their questions."""
    try:
        return services.attempts.get(attempt_id, user_id).to_dict()
    except QuizPulseError as e:
        raise to_http_exception(e) from e


@router.post("/{attempt_id}/abandon", response_model=AttemptResponse)
def abandon_attempt(
    attempt_id: str,
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> AttemptResponse:
    try:
        return _attempt_response(services.attempts.abandon(attempt_id, user_id))
    except QuizPulseError as e:
        raise to_http_exception(e) from e


@router.delete("/{attempt_id}")
def delete_attempt(
    attempt_id: str,
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> Dict[str, str]:
    try:
        services.attempts.delete(attempt_id, user_id)
    except QuizPulseError as e:
        raise to_http_exception(e) from e
    return {"message": "Quiz attempt deleted successfully"}
