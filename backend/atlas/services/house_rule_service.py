"""House rule service — CRUD plus keeping each active rule indexed for search."""

import logging
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from atlas.errors import HouseRuleNotFound, PersistenceError, ValidationError
from atlas.models.embedding import SOURCE_HOUSE_RULE
from atlas.models.house_rule import HouseRule
from atlas.services import ai_client, embedding_store
from atlas.services.game_service import get_game
from atlas.services.ingest import chunk_text

logger = logging.getLogger(__name__)


def _validate(fields: dict) -> None:
    for key, label in (("title", "title"), ("description", "description")):
        if key in fields and (fields[key] is None or not fields[key].strip()):
            raise ValidationError(f"House rule {label} cannot be empty")


def _index_text(rule: HouseRule) -> str:
    header = f"House rule: {rule.title}"
    if rule.category:
        header += f" ({rule.category})"
    return f"{header}\n{rule.description}"


async def _embed(rule: HouseRule) -> tuple[list[str], list[list[float]]]:
    """Chunk and embed a rule before any row is written; inactive rules get nothing."""
    if not rule.is_active:
        return [], []
    pieces = [text for _, text in chunk_text(_index_text(rule))]
    return pieces, await ai_client.embed_texts(pieces)


def _stage_index(db: Session, rule: HouseRule, pieces: list[str], vectors: list[list[float]]) -> None:
    metadatas = [{"title": rule.title, "category": rule.category} for _ in pieces]
    embedding_store.replace_source(db, rule.game_id, SOURCE_HOUSE_RULE, rule.id, pieces, vectors, metadatas)


def get_house_rule(db: Session, house_rule_id: int) -> HouseRule:
    rule = db.query(HouseRule).filter(HouseRule.id == house_rule_id).first()
    if not rule:
        raise HouseRuleNotFound(house_rule_id)
    return rule


def list_house_rules(
    db: Session,
    game_id: int,
    page: int,
    limit: int,
    active_only: bool = False,
) -> tuple[list[HouseRule], int]:
    get_game(db, game_id)
    query = db.query(HouseRule).filter(HouseRule.game_id == game_id)
    if active_only:
        query = query.filter(HouseRule.is_active.is_(True))

    total = query.with_entities(func.count(HouseRule.id)).scalar() or 0
    rules = (
        query.order_by(HouseRule.created_at.desc(), HouseRule.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rules, total


async def create_house_rule(db: Session, fields: dict) -> HouseRule:
    """Create a house rule and index it, as one unit: if indexing fails, nothing is kept."""
    _validate({"title": fields.get("title"), "description": fields.get("description")})
    get_game(db, fields["game_id"])

    rule = HouseRule(
        game_id=fields["game_id"],
        title=fields["title"].strip(),
        description=fields["description"].strip(),
        category=fields.get("category"),
        is_active=fields.get("is_active", True),
    )
    pieces, vectors = await _embed(rule)

    db.add(rule)
    try:
        db.flush()
        _stage_index(db, rule, pieces, vectors)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to create house rule: {e}") from e
    db.refresh(rule)
    logger.info("Created house rule %s for game %s", rule.id, rule.game_id)
    return rule


async def update_house_rule(db: Session, house_rule_id: int, fields: dict) -> HouseRule:
    rule = get_house_rule(db, house_rule_id)
    _validate(fields)

    for key in ("title", "description", "category", "is_active"):
        if key not in fields:
            continue
        value = fields[key]
        if key in ("title", "description"):
            value = value.strip()
        if key == "is_active" and value is None:
            continue
        setattr(rule, key, value)

    try:
        pieces, vectors = await _embed(rule)
    except Exception:
        # Drop the unsaved attribute changes along with the failed indexing
        db.rollback()
        raise

    try:
        _stage_index(db, rule, pieces, vectors)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to update house rule: {e}") from e
    db.refresh(rule)
    return rule


def delete_house_rule(db: Session, house_rule_id: int) -> int:
    """Delete a house rule and its chunks. Returns how many chunks went with it."""
    rule = get_house_rule(db, house_rule_id)
    try:
        removed = embedding_store.delete_by_source(
            db, rule.game_id, SOURCE_HOUSE_RULE, rule.id, commit=False
        )
        db.delete(rule)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to delete house rule: {e}") from e
    logger.info("Deleted house rule %s (%d chunks)", house_rule_id, removed)
    return removed
