"""Chat router — rules search, chat sessions and the RAG message endpoint."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from atlas.config import settings
from atlas.database import get_db
from atlas.middleware.rate_limit import limiter
from atlas.schemas.chat import (
    ChatHistory,
    ChatMessageResponse,
    ChatRequest,
    ChatResponse,
    ChatSessionCreate,
    ChatSessionResponse,
    ChatSessionSummary,
    ContextSource,
    RulesSearchResponse,
    SearchResult,
)
from atlas.schemas.common import Page, isoformat
from atlas.services import chat_service, search

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _session_to_response(session) -> ChatSessionResponse:
    return ChatSessionResponse(
        id=session.id,
        game_id=session.game_id,
        title=session.title,
        created_at=isoformat(session.created_at),
        updated_at=isoformat(session.updated_at),
    )


def _message_to_response(message) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        session_id=message.session_id,
        role=message.role,
        content=message.content,
        context_chunks=message.context_chunk_ids,
        context_sources=[ContextSource(**s) for s in message.context_sources],
        created_at=isoformat(message.created_at),
    )


@router.get("/search-rules", response_model=RulesSearchResponse)
async def search_rules(
    game_id: int = Query(..., alias="gameId"),
    query: str = Query(..., min_length=1),
    limit: int = Query(settings.RAG_TOP_K, ge=1, le=settings.SEARCH_MAX_LIMIT),
    db: Session = Depends(get_db),
):
    """Similarity search over a game's rules and house rules."""
    results = await search.search_rules(db, game_id, query, limit)
    return RulesSearchResponse(
        game_id=game_id,
        query=query,
        results=[SearchResult(**r.as_source()) for r in results],
        total_results=len(results),
    )


@router.get("/sessions", response_model=Page[ChatSessionSummary])
def list_sessions(
    game_id: int = Query(..., alias="gameId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    summaries, total = chat_service.list_sessions(db, game_id, page, limit)
    items = [
        ChatSessionSummary(
            id=s["session"].id,
            game_id=s["session"].game_id,
            title=s["session"].title,
            message_count=s["message_count"],
            last_message_at=isoformat(s["last_message_at"]),
            created_at=isoformat(s["session"].created_at),
        )
        for s in summaries
    ]
    return Page[ChatSessionSummary].build(items, total, page, limit)


@router.post("/sessions", response_model=ChatSessionResponse, status_code=201)
def create_session(req: ChatSessionCreate, db: Session = Depends(get_db)):
    session = chat_service.create_session(db, req.game_id, req.title)
    return _session_to_response(session)


@router.get("/sessions/{session_id}", response_model=ChatHistory)
def get_session(session_id: int, db: Session = Depends(get_db)):
    """A session with its full message history, oldest first."""
    session, messages = chat_service.get_history(db, session_id)
    return ChatHistory(
        session=_session_to_response(session),
        messages=[_message_to_response(m) for m in messages],
    )


@router.post("/message", response_model=ChatResponse)
@limiter.limit(settings.CHAT_RATE_LIMIT)
async def post_message(request: Request, req: ChatRequest, db: Session = Depends(get_db)):
    """Ask a question in a session; the reply is grounded in retrieved rules chunks."""
    message, context = await chat_service.post_message(db, req.session_id, req.message)
    return ChatResponse(
        message=_message_to_response(message),
        context_sources=[ContextSource(**c.as_source()) for c in context],
    )
