"""
Feedback Router — records seller decisions on AI suggestions and exposes the
digest that calibrates the next round of suggestions.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from ppc_copilot.config import Settings
from ppc_copilot.dependencies import get_app_settings, get_feedback_store
from ppc_copilot.models import FeedbackEntry
from ppc_copilot.services.feedback_service import FeedbackStore
from ppc_copilot.utils import safe_error_detail

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_feedback(store: FeedbackStore = Depends(get_feedback_store)):
    try:
        entries = await store.read_all()
    except (OSError, ValueError) as e:
        raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to read feedback."))
    return {
        "success": True,
        "feedback": [e.to_json_dict(exclude_none=True) for e in entries],
        "total": len(entries),
    }


@router.post("")
async def submit_feedback(entry: FeedbackEntry, store: FeedbackStore = Depends(get_feedback_store)):
    """Append one decision. Server time is used when no timestamp is sent."""
    try:
        saved = await store.append(entry)
    except (OSError, ValueError) as e:
        raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to save feedback."))
    return {"success": True, "entry": saved.to_json_dict(exclude_none=True)}


@router.get("/summary")
async def feedback_summary(
    window: Optional[int] = Query(None, ge=0, le=1000),
    store: FeedbackStore = Depends(get_feedback_store),
    settings: Settings = Depends(get_app_settings),
):
    """Recent decisions bucketed by action, plus the text sent to the model."""
    if window is None:
        window = settings.feedback_summary_window
    try:
        digest = await store.summarize(window)
    except (OSError, ValueError) as e:
        raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to summarize feedback."))
    return {"success": True, "window": window, **digest.to_dict(), "prompt": digest.to_prompt()}
