"""FastAPI dependencies and error translation shared by the routers."""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from quizpulse.errors import QuizPulseError
from quizpulse.services import Services

STATUS_BY_KIND = {
    "not_found": 404,
    "unauthorized": 403,
    "conflict": 409,
    "validation": 400,
    "internal": 500,
}


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_user(x_user_id: str | None = Header(default=None)) -> str:
    """
    Caller identity, set by the authentication layer in front of this service.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing caller identity")
    return x_user_id.strip()


def to_http_exception(error: QuizPulseError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND.get(error.kind, 500),
        detail=error.to_dict(),
    )
