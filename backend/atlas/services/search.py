"""Similarity search — brute-force cosine scan over a game's chunks."""

import json
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from sqlalchemy.orm import Session

from atlas.config import settings
from atlas.errors import GameNotFound, InvalidInput
from atlas.models.game import Game
from atlas.services import ai_client, embedding_store

logger = logging.getLogger(__name__)


@dataclass
class ScoredChunk:
    embedding_id: int
    chunk_text: str
    chunk_index: int
    source_type: str
    source_id: Optional[int]
    score: float
    metadata: Optional[str]

    def as_source(self) -> dict:
        return {
            "embedding_id": self.embedding_id,
            "chunk_text": self.chunk_text,
            "chunk_index": self.chunk_index,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "similarity_score": self.score,
            "metadata": self.metadata,
        }


def normalized_scores(query_vec: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of each row against the query, mapped from [-1, 1] to [0, 1]."""
    q_norm = np.linalg.norm(query_vec)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        cosine = np.where(denom > 0, (matrix @ query_vec) / denom, 0.0)
    scores = np.clip((cosine + 1.0) / 2.0, 0.0, 1.0)
    # Rounded so equal-looking scores compare equal and fall to the index tie-break
    return np.round(scores, 6)


def rank_chunks(query_vec: list[float], chunks: list, limit: int) -> list[ScoredChunk]:
    """Score chunks against a query vector; best first, ties by chunk_index then id."""
    q = np.asarray(query_vec, dtype=np.float64)

    usable = []
    vectors = []
    for chunk in chunks:
        try:
            vector = json.loads(chunk.embedding)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Skipping embedding %s: unreadable vector", chunk.id)
            continue
        if len(vector) != len(q):
            logger.warning(
                "Skipping embedding %s: dimension %d does not match query dimension %d",
                chunk.id, len(vector), len(q),
            )
            continue
        usable.append(chunk)
        vectors.append(vector)

    if not usable:
        return []

    scores = normalized_scores(q, np.asarray(vectors, dtype=np.float64))
    scored = [
        ScoredChunk(
            embedding_id=c.id,
            chunk_text=c.chunk_text,
            chunk_index=c.chunk_index,
            source_type=c.source_type,
            source_id=c.source_id,
            score=float(s),
            metadata=c.meta,
        )
        for c, s in zip(usable, scores)
    ]
    scored.sort(key=lambda r: (-r.score, r.chunk_index, r.embedding_id))
    return scored[:limit]


async def search_rules(db: Session, game_id: int, query: str, limit: Optional[int] = None) -> list[ScoredChunk]:
    """Top-`limit` chunks of a game for a free-text query.

    A game with no stored chunks yields an empty list without calling the
    embedding service.
    """
    if limit is None:
        limit = settings.RAG_TOP_K
    if limit < 1 or limit > settings.SEARCH_MAX_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {settings.SEARCH_MAX_LIMIT}")
    if not query or not query.strip():
        raise InvalidInput("Search query cannot be empty")

    if db.query(Game.id).filter(Game.id == game_id).first() is None:
        raise GameNotFound(game_id)

    chunks = embedding_store.chunks_for_game(db, game_id)
    if not chunks:
        return []

    query_vec = await ai_client.embed_query(query.strip())
    return rank_chunks(query_vec, chunks, limit)
