"""Rules document workflow — upload/replace, inspect and delete a game's rules PDF."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from atlas.config import settings
from atlas.errors import PersistenceError
from atlas.models.embedding import SOURCE_RULES_PDF
from atlas.services import ai_client, embedding_store
from atlas.services.game_service import get_game
from atlas.services.ingest import ingest_pdf
from atlas.services.locks import rules_upload_locks

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    game_id: int
    file_path: str
    chunks_processed: int
    total_text_length: int


@dataclass
class RulesInfo:
    game_id: int
    has_rules_pdf: bool
    rules_pdf_path: Optional[str]
    chunk_count: int
    text_length: int
    last_processed: Optional[datetime]


@dataclass
class DeleteResult:
    game_id: int
    embeddings_deleted: int
    file_deleted: bool


def pdf_filename(game_id: int) -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
    return f"game_{game_id}_{timestamp}.pdf"


def _remove_file(path: Optional[str]) -> bool:
    if not path:
        return False
    file_path = Path(path)
    if not file_path.exists():
        return False
    try:
        file_path.unlink()
        return True
    except OSError as e:
        logger.warning("Could not remove rules file %s: %s", path, e)
        return False


async def upload_rules(db: Session, game_id: int, content: bytes, original_filename: str) -> UploadResult:
    """Replace a game's rules document and its rules_pdf chunks.

    Validation, extraction and embedding all happen before the database is
    touched; the delete-old / insert-new / update-game writes then commit
    together. Uploads for the same game are serialized.
    """
    get_game(db, game_id)

    async with rules_upload_locks.hold(game_id):
        document, chunks = await asyncio.to_thread(ingest_pdf, content, original_filename)
        vectors = await ai_client.embed_texts([c.text for c in chunks])

        # The game may have been deleted while the document was being embedded
        game = get_game(db, game_id)
        previous_path = game.rules_pdf_path

        upload_dir = Path(settings.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        file_path = upload_dir / pdf_filename(game_id)
        file_path.write_bytes(content)
        try:
            embedding_store.replace_source(
                db,
                game_id,
                SOURCE_RULES_PDF,
                None,
                [c.text for c in chunks],
                vectors,
                [c.metadata for c in chunks],
            )
            game.rules_pdf_path = str(file_path)
            game.rules_text = document.text
            db.commit()
        except (SQLAlchemyError, PersistenceError) as e:
            db.rollback()
            file_path.unlink(missing_ok=True)
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(f"Failed to store rules for game {game_id}: {e}") from e

        if previous_path and previous_path != str(file_path):
            _remove_file(previous_path)

    logger.info(
        "Processed rules PDF for game %s: %d chunks, %d characters",
        game_id, len(chunks), len(document.text),
    )
    return UploadResult(
        game_id=game_id,
        file_path=str(file_path),
        chunks_processed=len(chunks),
        total_text_length=len(document.text),
    )


def rules_info(db: Session, game_id: int) -> RulesInfo:
    game = get_game(db, game_id)
    return RulesInfo(
        game_id=game.id,
        has_rules_pdf=game.rules_pdf_path is not None,
        rules_pdf_path=game.rules_pdf_path,
        chunk_count=embedding_store.count_for_source(db, game_id, SOURCE_RULES_PDF),
        text_length=len(game.rules_text or ""),
        last_processed=embedding_store.last_processed_at(db, game_id, SOURCE_RULES_PDF),
    )


async def delete_rules(db: Session, game_id: int) -> DeleteResult:
    """Drop the rules_pdf chunks, clear the game's rules fields, remove the file."""
    get_game(db, game_id)

    async with rules_upload_locks.hold(game_id):
        game = get_game(db, game_id)
        pdf_path = game.rules_pdf_path
        try:
            deleted = embedding_store.delete_by_source(db, game_id, SOURCE_RULES_PDF, commit=False)
            game.rules_pdf_path = None
            game.rules_text = None
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to delete rules for game {game_id}: {e}") from e

        file_deleted = _remove_file(pdf_path)

    logger.info("Deleted rules for game %s: %d chunks, file removed=%s", game_id, deleted, file_deleted)
    return DeleteResult(game_id=game_id, embeddings_deleted=deleted, file_deleted=file_deleted)
