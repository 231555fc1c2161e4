"""Conversational search routes.

POST /api/ai-search                   one conversation turn
GET  /api/ai-search/session/{token}   stored state for a session token
DELETE /api/ai-search/session/{token} close a session
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from spacematch.agents.requirement_extractor import RequirementExtractor
from spacematch.app.config import Settings, get_settings
from spacematch.domain.schemas import SearchTurnRequest, SearchTurnResponse
from spacematch.infra.database import get_db
from spacematch.services.conversation_state import serialize_state
from spacematch.services.listing_source import HttpListingSource, ListingSource
from spacematch.services.search_orchestrator import SearchOrchestrator
from spacematch.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai-search", tags=["ai-search"])


def get_listing_source(settings: Settings = Depends(get_settings)) -> ListingSource:
    return HttpListingSource(settings)


def get_orchestrator(
    settings: Settings = Depends(get_settings),
    listing_source: ListingSource = Depends(get_listing_source),
) -> SearchOrchestrator:
    return SearchOrchestrator(RequirementExtractor(settings), listing_source)


@router.post("", response_model=SearchTurnResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def ai_search_turn(
    req: SearchTurnRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """Process one turn of the conversation.

    State comes from ``sessionToken`` when it names a live session,
    otherwise from ``context.fullState``, otherwise a new conversation
    starts. The updated state is stored and its token returned.
    """
    store = SessionStore(db, ttl_hours=settings.session_ttl_hours)
    state = await store.load(req.session_token)
    if req.session_token and state is None:
        logger.info("[ai-search] Unknown or expired session token, falling back to request context")

    outcome = await orchestrator.run_turn(req, state)

    token = await store.save(outcome.state, req.session_token if state is not None else None)
    await db.commit()

    response = outcome.response
    response.session_token = token
    return response


@router.get("/session/{token}")
async def get_session_state(
    token: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Return the stored conversation state for a session token."""
    store = SessionStore(db, ttl_hours=settings.session_ttl_hours)
    state = await store.load(token)
    await db.commit()
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found or expired")
    return {"sessionToken": token, "fullState": serialize_state(state)}


@router.delete("/session/{token}")
async def end_session(token: str, db: AsyncSession = Depends(get_db)):
    """Close a session so its token no longer resumes the conversation."""
    if not await SessionStore(db).expire(token):
        raise HTTPException(status_code=404, detail="Session not found")
    await db.commit()
    return {"status": "expired"}
