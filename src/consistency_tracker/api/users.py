"""Per-user engine endpoints with token auth."""

from __future__ import annotations

import logging
from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from consistency_tracker.api.schemas import (
    ChallengeResponse,
    CompletionRequest,
    CompletionResponse,
    LinkRequest,
    LinkResponse,
    ProgressResponse,
)
from consistency_tracker.domain.errors import StoreUnavailable

if TYPE_CHECKING:
    from consistency_tracker.containers import AppContainer
    from consistency_tracker.services.sessions import UserSession

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure requests include a valid API token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


async def _open_session(request: Request, user_id: str) -> UserSession:
    container: AppContainer = request.app.state.container
    session = await container.sessions.open(user_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found"
        )
    return session


@router.get("/{user_id}/progress", dependencies=[Depends(require_token)])
async def get_progress(user_id: str, request: Request) -> ProgressResponse:
    """Recompute and return goal progress, falling back to the last value."""
    session = await _open_session(request, user_id)
    try:
        result = await session.progress.recompute()
    except StoreUnavailable as exc:
        logger.warning("Serving last known progress: %s", exc)
        return ProgressResponse.from_result(
            user_id,
            session.progress.latest,
            advisory="Progress could not be refreshed; showing the last known value",
        )
    return ProgressResponse.from_result(user_id, result)


@router.put("/{user_id}/completions/{day}", dependencies=[Depends(require_token)])
async def put_completion(
    user_id: str, day: date, payload: CompletionRequest, request: Request
) -> CompletionResponse:
    """Record whether the user completed a day.

    An open session listening on the bus has settled its progress by the time
    the response is sent.
    """
    container: AppContainer = request.app.state.container
    record = await container.day_completion_service.mark_day(
        user_id, day, payload.completed
    )
    session = container.sessions.get(user_id)
    if session is not None:
        await session.progress.drain()
    return CompletionResponse.from_record(record)


@router.get("/{user_id}/challenge", dependencies=[Depends(require_token)])
async def get_challenge(user_id: str, request: Request) -> ChallengeResponse:
    """Return today's challenge, generating it if needed."""
    session = await _open_session(request, user_id)
    artifact = await session.challenge.load_or_generate_today(session.profile)
    return ChallengeResponse.from_artifact(artifact)


@router.post("/{user_id}/challenge/refresh", dependencies=[Depends(require_token)])
async def refresh_challenge(user_id: str, request: Request) -> ChallengeResponse:
    """Replace today's challenge with a new one."""
    session = await _open_session(request, user_id)
    artifact = await session.challenge.refresh(session.profile)
    return ChallengeResponse.from_artifact(artifact)


@router.post("/{user_id}/challenge/complete", dependencies=[Depends(require_token)])
async def complete_challenge(user_id: str, request: Request) -> ChallengeResponse:
    """Mark today's challenge completed."""
    session = await _open_session(request, user_id)
    await session.challenge.load_or_generate_today(session.profile)
    artifact = await session.challenge.mark_completed()
    if artifact is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No challenge for today"
        )
    return ChallengeResponse.from_artifact(artifact)


@router.post("/{user_id}/challenge/link", dependencies=[Depends(require_token)])
async def link_challenge(
    user_id: str, payload: LinkRequest, request: Request
) -> LinkResponse:
    """Attach the caller's task to today's challenge, keeping an existing link."""
    session = await _open_session(request, user_id)
    if session.challenge.current is None:
        await session.challenge.load_or_generate_today(session.profile)
    task_id = await session.challenge.link_to_task(lambda _artifact: payload.task_id)
    return LinkResponse(task_id=task_id)
