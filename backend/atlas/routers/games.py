"""Games router — game CRUD plus the rules document upload/info/delete endpoints."""

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.orm import Session

from atlas.config import settings
from atlas.database import get_db
from atlas.errors import TooLarge
from atlas.schemas.common import Page, isoformat
from atlas.schemas.game import (
    DeleteRulesResponse,
    GameCreate,
    GameResponse,
    GameSummary,
    GameUpdate,
    RulesInfoResponse,
    UploadResponse,
)
from atlas.services import game_service, rules_service

router = APIRouter(prefix="/api/games", tags=["games"])


def _game_to_response(game) -> GameResponse:
    return GameResponse(
        id=game.id,
        name=game.name,
        description=game.description,
        publisher=game.publisher,
        year_published=game.year_published,
        min_players=game.min_players,
        max_players=game.max_players,
        play_time_minutes=game.play_time_minutes,
        complexity_rating=game.complexity_rating,
        bgg_id=game.bgg_id,
        rules_pdf_path=game.rules_pdf_path,
        rules_text=game.rules_text,
        created_at=isoformat(game.created_at),
        updated_at=isoformat(game.updated_at),
    )


def _game_to_summary(game, house_rules_count: int) -> GameSummary:
    return GameSummary(
        id=game.id,
        name=game.name,
        publisher=game.publisher,
        year_published=game.year_published,
        min_players=game.min_players,
        max_players=game.max_players,
        complexity_rating=game.complexity_rating,
        has_rules_pdf=game.rules_pdf_path is not None,
        house_rules_count=house_rules_count,
    )


@router.get("", response_model=Page[GameSummary])
def list_games(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List games alphabetically, one page at a time."""
    rows, total = game_service.list_games(db, page, limit)
    items = [_game_to_summary(game, count) for game, count in rows]
    return Page[GameSummary].build(items, total, page, limit)


@router.post("", response_model=GameResponse, status_code=201)
def create_game(req: GameCreate, db: Session = Depends(get_db)):
    game = game_service.create_game(db, req.model_dump())
    return _game_to_response(game)


@router.get("/{game_id}", response_model=GameResponse)
def get_game(game_id: int, db: Session = Depends(get_db)):
    return _game_to_response(game_service.get_game(db, game_id))


@router.put("/{game_id}", response_model=GameResponse)
def update_game(game_id: int, req: GameUpdate, db: Session = Depends(get_db)):
    """Partial update: only fields present in the body are changed."""
    game = game_service.update_game(db, game_id, req.model_dump(exclude_unset=True))
    return _game_to_response(game)


@router.delete("/{game_id}", status_code=204)
def delete_game(game_id: int, db: Session = Depends(get_db)):
    """Delete a game together with its house rules, embeddings and chat sessions."""
    game_service.delete_game(db, game_id)
    return Response(status_code=204)


# ── Rules document ───────────────────────────────────────────────────────────

@router.post("/{game_id}/rules-upload", response_model=UploadResponse)
async def upload_rules(
    game_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Upload a rules PDF, replacing any previous one, and index it for search."""
    content = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise TooLarge(f"File too large (max {settings.MAX_UPLOAD_BYTES} bytes)")

    result = await rules_service.upload_rules(db, game_id, content, file.filename or "rules.pdf")
    return UploadResponse(
        message="Rules PDF processed successfully",
        game_id=result.game_id,
        file_path=result.file_path,
        chunks_processed=result.chunks_processed,
        total_text_length=result.total_text_length,
    )


@router.get("/{game_id}/rules-info", response_model=RulesInfoResponse)
def get_rules_info(game_id: int, db: Session = Depends(get_db)):
    info = rules_service.rules_info(db, game_id)
    return RulesInfoResponse(
        game_id=info.game_id,
        has_rules_pdf=info.has_rules_pdf,
        rules_pdf_path=info.rules_pdf_path,
        chunk_count=info.chunk_count,
        text_length=info.text_length,
        last_processed=isoformat(info.last_processed),
    )


@router.delete("/{game_id}/rules", response_model=DeleteRulesResponse)
async def delete_rules(game_id: int, db: Session = Depends(get_db)):
    """Remove the rules PDF, its extracted text and its embeddings."""
    result = await rules_service.delete_rules(db, game_id)
    return DeleteRulesResponse(
        game_id=result.game_id,
        message="Rules deleted",
        embeddings_deleted=result.embeddings_deleted,
        file_deleted=result.file_deleted,
    )
