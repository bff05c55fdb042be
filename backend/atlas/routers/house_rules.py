"""House rules router."""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from atlas.database import get_db
from atlas.schemas.common import Page, isoformat
from atlas.schemas.house_rule import HouseRuleCreate, HouseRuleResponse, HouseRuleUpdate
from atlas.services import house_rule_service

router = APIRouter(prefix="/api/house-rules", tags=["house-rules"])


def _rule_to_response(rule) -> HouseRuleResponse:
    return HouseRuleResponse(
        id=rule.id,
        game_id=rule.game_id,
        title=rule.title,
        description=rule.description,
        category=rule.category,
        is_active=rule.is_active,
        created_at=isoformat(rule.created_at),
        updated_at=isoformat(rule.updated_at),
    )


@router.get("", response_model=Page[HouseRuleResponse])
def list_house_rules(
    game_id: int = Query(..., alias="gameId"),
    active_only: bool = Query(False, alias="activeOnly"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """House rules of a game, newest first."""
    rules, total = house_rule_service.list_house_rules(db, game_id, page, limit, active_only=active_only)
    return Page[HouseRuleResponse].build([_rule_to_response(r) for r in rules], total, page, limit)


@router.post("", response_model=HouseRuleResponse, status_code=201)
async def create_house_rule(req: HouseRuleCreate, db: Session = Depends(get_db)):
    rule = await house_rule_service.create_house_rule(db, req.model_dump())
    return _rule_to_response(rule)


@router.get("/{house_rule_id}", response_model=HouseRuleResponse)
def get_house_rule(house_rule_id: int, db: Session = Depends(get_db)):
    return _rule_to_response(house_rule_service.get_house_rule(db, house_rule_id))


@router.put("/{house_rule_id}", response_model=HouseRuleResponse)
async def update_house_rule(house_rule_id: int, req: HouseRuleUpdate, db: Session = Depends(get_db)):
    rule = await house_rule_service.update_house_rule(db, house_rule_id, req.model_dump(exclude_unset=True))
    return _rule_to_response(rule)


@router.delete("/{house_rule_id}", status_code=204)
def delete_house_rule(house_rule_id: int, db: Session = Depends(get_db)):
    house_rule_service.delete_house_rule(db, house_rule_id)
    return Response(status_code=204)
