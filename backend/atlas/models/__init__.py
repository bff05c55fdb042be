"""SQLAlchemy ORM models."""

from atlas.models.game import Game
from atlas.models.house_rule import HouseRule
from atlas.models.embedding import EmbeddingChunk
from atlas.models.chat import ChatSession, ChatMessage

__all__ = [
    "Game",
    "HouseRule",
    "EmbeddingChunk",
    "ChatSession",
    "ChatMessage",
]
