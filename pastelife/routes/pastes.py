"""
Paste routes.
Handles create, fetch (API) and raw view operations.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import PlainTextResponse

from pastelife.config import Settings
from pastelife.errors import GenerationExhaustedError, PasteNotFound, StoreUnavailable, ValidationError
from pastelife.models import PasteCreate, PasteResponse, PasteView
from pastelife.routes.deps import get_service, get_settings
from pastelife.service import PasteService

router = APIRouter()
logger = logging.getLogger(__name__)

NOT_FOUND_DETAIL = "Paste not found or expired"


def _get_current_time(settings: Settings, x_test_now_ms: Optional[str] = None) -> datetime:
    """
    Get current time, respecting TEST_MODE for deterministic testing.

    Args:
        settings: Application settings
        x_test_now_ms: Test timestamp header (milliseconds since epoch)

    Returns:
        Current datetime in UTC
    """
    if settings.TEST_MODE and x_test_now_ms:
        try:
            timestamp_ms = int(x_test_now_ms)
            return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        except (ValueError, TypeError, OverflowError, OSError) as e:
            logger.warning(f"Invalid x-test-now-ms header: {e}")

    return datetime.now(timezone.utc)


@router.post("/api/pastes", response_model=PasteResponse, status_code=201)
def create_paste(
    paste: PasteCreate,
    x_test_now_ms: Optional[str] = Header(None),
    service: PasteService = Depends(get_service),
    settings: Settings = Depends(get_settings),
) -> PasteResponse:
    """
    Create a new paste.

    Raises:
        HTTPException: 400 on invalid input, 500 if no id could be allocated,
            503 if the store is unavailable
    """
    try:
        created = service.create_paste(
            content=paste.content,
            ttl_seconds=paste.ttl_seconds,
            max_views=paste.max_views,
            now=_get_current_time(settings, x_test_now_ms),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GenerationExhaustedError as e:
        logger.error(f"Failed to save paste: {e}")
        raise HTTPException(status_code=500, detail="Failed to save paste")
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Paste store unavailable")

    return PasteResponse(id=created.id, url=created.url)


@router.get("/api/pastes/{paste_id}", response_model=PasteView)
def fetch_paste(
    paste_id: str,
    x_test_now_ms: Optional[str] = Header(None),
    service: PasteService = Depends(get_service),
    settings: Settings = Depends(get_settings),
) -> PasteView:
    """
    Fetch a paste (API endpoint).
    Each fetch consumes one view.

    Raises:
        HTTPException: 404 if the paste is absent, expired or out of views
    """
    try:
        view = service.read_paste(paste_id, now=_get_current_time(settings, x_test_now_ms))
    except PasteNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL)
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Paste store unavailable")

    return PasteView(
        content=view.content,
        remaining_views=view.remaining_views,
        expires_at=view.expires_at,
    )


@router.get("/p/{paste_id}", response_class=PlainTextResponse)
def view_paste(
    paste_id: str,
    x_test_now_ms: Optional[str] = Header(None),
    service: PasteService = Depends(get_service),
    settings: Settings = Depends(get_settings),
) -> PlainTextResponse:
    """
    View a paste's raw text.
    Does not consume a view.
    """
    try:
        view = service.read_paste(
            paste_id,
            now=_get_current_time(settings, x_test_now_ms),
            decrement=False,
        )
    except PasteNotFound:
        return PlainTextResponse(NOT_FOUND_DETAIL, status_code=404)
    except StoreUnavailable:
        return PlainTextResponse("Paste store unavailable", status_code=503)

    return PlainTextResponse(view.content)
