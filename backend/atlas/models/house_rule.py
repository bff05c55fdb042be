"""House rule model — a group's custom rule for a game."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from atlas.database import Base


class HouseRule(Base):
    __tablename__ = "house_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=True, index=True)  # Setup, Gameplay, Scoring, Variants...
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    game = relationship("Game", back_populates="house_rules")
    embeddings = relationship("EmbeddingChunk", back_populates="house_rule", cascade="all",
                              passive_deletes=True)
