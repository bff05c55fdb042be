"""Chat session and message models — append-only conversation log per game."""

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship

from atlas.database import Base

MESSAGE_ROLES = ("user", "assistant", "system")


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    game = relationship("Game", back_populates="chat_sessions")
    messages = relationship("ChatMessage", back_populates="session", cascade="all, delete-orphan",
                            passive_deletes=True, order_by="ChatMessage.id")


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant', 'system')", name="ck_chat_messages_role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False,
                        index=True)
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    # JSON list of embedding ids; not a foreign key, rows may be gone after a re-upload
    context_chunks = Column(Text, nullable=True)
    # JSON list of {embeddingId, chunkText, sourceType, similarityScore, metadata}
    context_snapshot = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), index=True)

    # Relationships
    session = relationship("ChatSession", back_populates="messages")

    @property
    def context_chunk_ids(self) -> list[int] | None:
        if self.context_chunks is None:
            return None
        return json.loads(self.context_chunks)

    @property
    def context_sources(self) -> list[dict]:
        if not self.context_snapshot:
            return []
        return json.loads(self.context_snapshot)
