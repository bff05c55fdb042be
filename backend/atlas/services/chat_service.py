"""Chat orchestrator — sessions, message history and retrieval-augmented replies."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from atlas.config import settings
from atlas.errors import InvalidInput, PersistenceError, SessionNotFound
from atlas.models.chat import ChatMessage, ChatSession
from atlas.models.embedding import SOURCE_HOUSE_RULE
from atlas.services import ai_client, search
from atlas.services.game_service import get_game
from atlas.services.locks import chat_session_locks
from atlas.services.search import ScoredChunk

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a rules expert for the board game \"{game}\". Answer the player's "
    "question using the context below, which comes from the official rules and "
    "the group's house rules. When a house rule changes an official rule, say so "
    "and follow the house rule. If the context does not cover the question, say "
    "that the rules provided do not answer it instead of guessing. Cite context "
    "entries by their number, like [2]."
)

NO_CONTEXT = "No rules text or house rules matched this question."


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to %s: %s", action, e)
        raise PersistenceError(f"Failed to {action}") from e


def get_session(db: Session, session_id: int) -> ChatSession:
    session = db.query(ChatSession).filter(ChatSession.id == session_id).first()
    if not session:
        raise SessionNotFound(session_id)
    return session


def create_session(db: Session, game_id: int, title: Optional[str] = None) -> ChatSession:
    get_game(db, game_id)
    session = ChatSession(game_id=game_id, title=title.strip() if title and title.strip() else None)
    db.add(session)
    _commit(db, "create chat session")
    db.refresh(session)
    logger.info("Created chat session %s for game %s", session.id, game_id)
    return session


def list_sessions(db: Session, game_id: int, page: int, limit: int) -> tuple[list[dict], int]:
    """One page of session summaries for a game, most recently active first."""
    get_game(db, game_id)
    total = db.query(func.count(ChatSession.id)).filter(ChatSession.game_id == game_id).scalar() or 0

    stats = (
        db.query(
            ChatMessage.session_id,
            func.count(ChatMessage.id).label("message_count"),
            func.max(ChatMessage.created_at).label("last_message_at"),
        )
        .group_by(ChatMessage.session_id)
        .subquery()
    )
    rows = (
        db.query(ChatSession, stats.c.message_count, stats.c.last_message_at)
        .outerjoin(stats, stats.c.session_id == ChatSession.id)
        .filter(ChatSession.game_id == game_id)
        .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    summaries = [
        {
            "session": session,
            "message_count": int(count or 0),
            "last_message_at": last_at,
        }
        for session, count, last_at in rows
    ]
    return summaries, total


def get_history(db: Session, session_id: int) -> tuple[ChatSession, list[ChatMessage]]:
    session = get_session(db, session_id)
    messages = (
        db.query(ChatMessage)
        .filter(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.id.asc())
        .all()
    )
    return session, messages


def append_message(
    db: Session,
    session: ChatSession,
    role: str,
    content: str,
    context: Optional[list[ScoredChunk]] = None,
) -> ChatMessage:
    """Append one immutable message and bump the session's updated_at."""
    now = datetime.now(timezone.utc)
    message = ChatMessage(
        session_id=session.id,
        role=role,
        content=content,
        created_at=now,
    )
    if context is not None:
        message.context_chunks = json.dumps([c.embedding_id for c in context])
        message.context_snapshot = json.dumps([c.as_source() for c in context])
    db.add(message)
    session.updated_at = now
    _commit(db, f"save {role} message")
    db.refresh(message)
    return message


# ── Prompt assembly ──────────────────────────────────────────────────────────

def format_context(chunks: list[ScoredChunk]) -> str:
    if not chunks:
        return NO_CONTEXT
    blocks = []
    for n, chunk in enumerate(chunks, start=1):
        label = "House rule" if chunk.source_type == SOURCE_HOUSE_RULE else "Rules"
        blocks.append(f"[{n}] ({label}) {chunk.chunk_text}")
    return "\n\n".join(blocks)


def build_system_prompt(game_name: str, chunks: list[ScoredChunk]) -> str:
    return f"{SYSTEM_PROMPT.format(game=game_name)}\n\nContext:\n{format_context(chunks)}"


def build_conversation(history: list[ChatMessage], question: str) -> list[dict]:
    """Prior turns (most recent N) followed by the question, alternating roles.

    System messages are left out; consecutive same-role turns are merged so
    providers that require strict user/assistant alternation accept them.
    """
    turns = [m for m in history if m.role in ("user", "assistant")]
    if settings.CHAT_HISTORY_MESSAGES > 0:
        turns = turns[-settings.CHAT_HISTORY_MESSAGES:]
    else:
        turns = []

    conversation: list[dict] = []
    for role, content in [(m.role, m.content) for m in turns] + [("user", question)]:
        if conversation and conversation[-1]["role"] == role:
            conversation[-1]["content"] += "\n\n" + content
        else:
            conversation.append({"role": role, "content": content})

    # Most providers expect the first turn to come from the user
    while conversation and conversation[0]["role"] != "user":
        conversation.pop(0)
    return conversation


async def post_message(db: Session, session_id: int, text: str) -> tuple[ChatMessage, list[ScoredChunk]]:
    """Answer a user message in a session.

    The user message is committed before retrieval and generation, so it stays
    in the history even when the embedding or LLM call fails. Only one reply is
    generated per session at a time.
    """
    session = get_session(db, session_id)
    question = (text or "").strip()
    if not question:
        raise InvalidInput("Message cannot be empty")

    async with chat_session_locks.hold(session_id):
        _, history = get_history(db, session_id)
        append_message(db, session, "user", question)

        results = await search.search_rules(db, session.game_id, question, settings.RAG_TOP_K)
        context = [r for r in results if r.score >= settings.CHAT_MIN_SCORE]

        game = get_game(db, session.game_id)
        reply = await ai_client.chat(
            build_system_prompt(game.name, context),
            build_conversation(history, question),
        )

        assistant = append_message(db, session, "assistant", reply.strip(), context=context)

    logger.info(
        "Answered message in session %s with %d context chunks (%d retrieved)",
        session_id, len(context), len(results),
    )
    return assistant, context
