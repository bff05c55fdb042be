"""Game service — business logic for game CRUD and listing."""

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from atlas.errors import GameNotFound, PersistenceError, ValidationError
from atlas.models.game import Game
from atlas.models.house_rule import HouseRule

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "publisher",
    "year_published",
    "min_players",
    "max_players",
    "play_time_minutes",
    "complexity_rating",
    "bgg_id",
)


def _validate(fields: dict, current: Optional[Game] = None) -> None:
    if "name" in fields and (fields["name"] is None or not fields["name"].strip()):
        raise ValidationError("Game name cannot be empty")

    complexity = fields.get("complexity_rating")
    if complexity is not None and not (1.0 <= complexity <= 5.0):
        raise ValidationError("Complexity rating must be between 1.0 and 5.0")

    min_players = fields.get("min_players", current.min_players if current else None)
    max_players = fields.get("max_players", current.max_players if current else None)
    if min_players is not None and max_players is not None and min_players > max_players:
        raise ValidationError("min_players cannot be greater than max_players")


def _ensure_bgg_id_free(db: Session, bgg_id: Optional[int], game_id: Optional[int] = None) -> None:
    if bgg_id is None:
        return
    query = db.query(Game.id).filter(Game.bgg_id == bgg_id)
    if game_id is not None:
        query = query.filter(Game.id != game_id)
    if query.first() is not None:
        raise ValidationError(f"A game with BoardGameGeek id {bgg_id} already exists")


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValidationError(f"Failed to {action}: constraint violated") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to %s: %s", action, e)
        raise PersistenceError(f"Failed to {action}") from e


def get_game(db: Session, game_id: int) -> Game:
    game = db.query(Game).filter(Game.id == game_id).first()
    if not game:
        raise GameNotFound(game_id)
    return game


def list_games(db: Session, page: int, limit: int) -> tuple[list[tuple[Game, int]], int]:
    """One page of games ordered by name, each with its house rule count."""
    total = db.query(func.count(Game.id)).scalar() or 0

    counts = (
        db.query(HouseRule.game_id, func.count(HouseRule.id).label("house_rules_count"))
        .group_by(HouseRule.game_id)
        .subquery()
    )
    rows = (
        db.query(Game, func.coalesce(counts.c.house_rules_count, 0))
        .outerjoin(counts, counts.c.game_id == Game.id)
        .order_by(Game.name.asc(), Game.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [(game, int(count)) for game, count in rows], total


def create_game(db: Session, fields: dict) -> Game:
    _validate(fields)
    _ensure_bgg_id_free(db, fields.get("bgg_id"))

    game = Game(**{k: v for k, v in fields.items() if k in EDITABLE_FIELDS})
    game.name = game.name.strip()
    db.add(game)
    _commit(db, "create game")
    db.refresh(game)
    logger.info("Created game %s (%s)", game.id, game.name)
    return game


def update_game(db: Session, game_id: int, fields: dict) -> Game:
    """Apply a partial update; fields absent from `fields` are left untouched."""
    game = get_game(db, game_id)
    _validate(fields, current=game)
    if "bgg_id" in fields:
        _ensure_bgg_id_free(db, fields["bgg_id"], game_id=game.id)

    for key, value in fields.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key == "name":
            value = value.strip()
        setattr(game, key, value)

    _commit(db, "update game")
    db.refresh(game)
    return game


def delete_game(db: Session, game_id: int) -> None:
    """Delete a game; house rules, embeddings, chat sessions and messages cascade."""
    game = get_game(db, game_id)
    pdf_path = game.rules_pdf_path

    db.delete(game)
    _commit(db, "delete game")

    if pdf_path:
        try:
            Path(pdf_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove rules file %s: %s", pdf_path, e)
    logger.info("Deleted game %s", game_id)
