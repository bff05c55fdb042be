"""Embedding store — persist chunk text + vectors per game and source."""

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from atlas.errors import PersistenceError
from atlas.models.embedding import EmbeddingChunk, SOURCE_TYPES
from atlas.services import ai_client

logger = logging.getLogger(__name__)


def _source_filter(query, game_id: int, source_type: str, source_id: Optional[int]):
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"Unknown source type '{source_type}'")
    query = query.filter(
        EmbeddingChunk.game_id == game_id,
        EmbeddingChunk.source_type == source_type,
    )
    if source_id is not None:
        query = query.filter(EmbeddingChunk.source_id == source_id)
    return query


def add_chunks(
    db: Session,
    game_id: int,
    source_type: str,
    source_id: Optional[int],
    chunks: list[str],
    vectors: list[list[float]],
    metadatas: Optional[list[dict]] = None,
) -> list[EmbeddingChunk]:
    """Stage pre-embedded chunks on the session, indexed 0..n-1. Does not commit."""
    if len(chunks) != len(vectors):
        raise ValueError("chunks and vectors must have the same length")
    rows = []
    for i, (text, vector) in enumerate(zip(chunks, vectors)):
        meta = metadatas[i] if metadatas else None
        row = EmbeddingChunk(
            game_id=game_id,
            chunk_text=text,
            embedding=json.dumps(vector),
            chunk_index=i,
            source_type=source_type,
            source_id=source_id,
            meta=json.dumps(meta) if meta is not None else None,
        )
        db.add(row)
        rows.append(row)
    return rows


def delete_by_source(
    db: Session,
    game_id: int,
    source_type: str,
    source_id: Optional[int] = None,
    commit: bool = True,
) -> int:
    """Remove every chunk for one source of a game. Returns rows deleted."""
    query = _source_filter(db.query(EmbeddingChunk), game_id, source_type, source_id)
    try:
        deleted = query.delete(synchronize_session=False)
        if commit:
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to delete embeddings: {e}") from e
    return deleted


def delete_by_game(db: Session, game_id: int, commit: bool = True) -> int:
    try:
        deleted = (
            db.query(EmbeddingChunk)
            .filter(EmbeddingChunk.game_id == game_id)
            .delete(synchronize_session=False)
        )
        if commit:
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to delete embeddings: {e}") from e
    return deleted


def replace_source(
    db: Session,
    game_id: int,
    source_type: str,
    source_id: Optional[int],
    chunks: list[str],
    vectors: list[list[float]],
    metadatas: Optional[list[dict]] = None,
) -> int:
    """Stage delete-then-insert of one source's chunks. The caller commits."""
    removed = delete_by_source(db, game_id, source_type, source_id, commit=False)
    add_chunks(db, game_id, source_type, source_id, chunks, vectors, metadatas)
    return removed


async def store_chunks(
    db: Session,
    game_id: int,
    source_type: str,
    source_id: Optional[int],
    chunks: list[str],
    metadatas: Optional[list[dict]] = None,
    replace: bool = True,
) -> int:
    """Embed and persist a chunk batch in one transaction. Returns count stored.

    All vectors are computed before the database is touched, so an embedding
    failure leaves the existing chunk set as it was. With replace=True the
    source's previous chunks are deleted in the same transaction.
    """
    vectors = await ai_client.embed_texts(chunks)
    try:
        if replace:
            replace_source(db, game_id, source_type, source_id, chunks, vectors, metadatas)
        else:
            add_chunks(db, game_id, source_type, source_id, chunks, vectors, metadatas)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to store embeddings: {e}") from e

    logger.info("Stored %d %s chunks for game %s", len(chunks), source_type, game_id)
    return len(chunks)


def count_for_source(db: Session, game_id: int, source_type: str, source_id: Optional[int] = None) -> int:
    query = _source_filter(db.query(func.count(EmbeddingChunk.id)), game_id, source_type, source_id)
    return query.scalar() or 0


def last_processed_at(db: Session, game_id: int, source_type: str) -> Optional[datetime]:
    query = _source_filter(db.query(func.max(EmbeddingChunk.created_at)), game_id, source_type, None)
    return query.scalar()


def chunks_for_game(db: Session, game_id: int) -> list[EmbeddingChunk]:
    return (
        db.query(EmbeddingChunk)
        .filter(EmbeddingChunk.game_id == game_id)
        .order_by(EmbeddingChunk.source_type, EmbeddingChunk.chunk_index, EmbeddingChunk.id)
        .all()
    )
