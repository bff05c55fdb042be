"""Embedding chunk model — chunked and embedded rules text for retrieval."""

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, CheckConstraint, Index
from sqlalchemy.orm import relationship

from atlas.database import Base

SOURCE_RULES_PDF = "rules_pdf"
SOURCE_HOUSE_RULE = "house_rule"
SOURCE_TYPES = (SOURCE_RULES_PDF, SOURCE_HOUSE_RULE)


class EmbeddingChunk(Base):
    __tablename__ = "embeddings"
    __table_args__ = (
        CheckConstraint("source_type IN ('rules_pdf', 'house_rule')", name="ck_embeddings_source_type"),
        Index("idx_embeddings_chunk_index", "game_id", "chunk_index"),
        # Ids are cited by chat messages; never hand a deleted id to a new chunk
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    chunk_text = Column(Text, nullable=False)
    embedding = Column(Text, nullable=False)  # JSON-serialized float vector
    chunk_index = Column(Integer, nullable=False)
    source_type = Column(String(20), nullable=False, index=True)
    source_id = Column(Integer, ForeignKey("house_rules.id", ondelete="CASCADE"), nullable=True, index=True)
    meta = Column("metadata", Text, nullable=True)  # JSON: page, file name, chunk size...
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    game = relationship("Game", back_populates="embeddings")
    house_rule = relationship("HouseRule", back_populates="embeddings")

    @property
    def vector(self) -> list[float]:
        return json.loads(self.embedding)
