"""
FastAPI Dependencies

Admin authentication and access to the services built at startup.
"""
import hmac
from fastapi import Request, HTTPException, status, Header
from typing import Optional
from loguru import logger

from src.config import settings
from src.repositories import DealRepository, ScoreEventRepository, ScoreHistoryRepository, ScoringConfigRepository
from src.services import BatchRecalculator, DealLifecycleService, ScoreRecalculator


async def require_admin_token(x_admin_token: Optional[str] = Header(None)) -> None:
    """
    Verify the X-Admin-Token header against ADMIN_API_TOKEN.

    Raises:
        HTTPException: 401 if the token is missing or wrong

    Note:
        Disabled when ADMIN_API_TOKEN is unset (local development)
    """
    if not settings.admin_api_token:
        logger.warning("⚠️ Admin token check is DISABLED (ADMIN_API_TOKEN not set)")
        return

    if not x_admin_token:
        logger.warning("🚫 Missing X-Admin-Token header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing admin token"
        )

    if not hmac.compare_digest(x_admin_token, settings.admin_api_token):
        logger.warning("🚫 Invalid admin token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )


def get_recalculator(request: Request) -> ScoreRecalculator:
    return request.app.state.recalculator


def get_batch_recalculator(request: Request) -> BatchRecalculator:
    return request.app.state.batch_recalculator


def get_lifecycle(request: Request) -> DealLifecycleService:
    return request.app.state.lifecycle


def get_deal_repo(request: Request) -> DealRepository:
    return request.app.state.deal_repo


def get_history_repo(request: Request) -> ScoreHistoryRepository:
    return request.app.state.history_repo


def get_event_repo(request: Request) -> ScoreEventRepository:
    return request.app.state.event_repo


def get_config_repo(request: Request) -> ScoringConfigRepository:
    return request.app.state.config_repo
