"""Game model — a board game and its uploaded rules document."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, CheckConstraint
from sqlalchemy.orm import relationship

from atlas.database import Base


class Game(Base):
    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint(
            "complexity_rating IS NULL OR (complexity_rating >= 1.0 AND complexity_rating <= 5.0)",
            name="ck_games_complexity_rating",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    publisher = Column(String(255), nullable=True)
    year_published = Column(Integer, nullable=True)
    min_players = Column(Integer, nullable=True)
    max_players = Column(Integer, nullable=True)
    play_time_minutes = Column(Integer, nullable=True)
    complexity_rating = Column(Float, nullable=True)
    bgg_id = Column(Integer, nullable=True, unique=True, index=True)  # BoardGameGeek id
    rules_pdf_path = Column(Text, nullable=True)
    rules_text = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    house_rules = relationship("HouseRule", back_populates="game", cascade="all, delete-orphan",
                               passive_deletes=True)
    embeddings = relationship("EmbeddingChunk", back_populates="game", cascade="all, delete-orphan",
                              passive_deletes=True)
    chat_sessions = relationship("ChatSession", back_populates="game", cascade="all, delete-orphan",
                                 passive_deletes=True)
