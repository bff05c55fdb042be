"""House rule request/response schemas."""

from typing import Optional

from atlas.schemas.common import ApiModel, RequestModel


class HouseRuleCreate(RequestModel):
    game_id: int
    title: str
    description: str
    category: Optional[str] = None
    is_active: bool = True


class HouseRuleUpdate(RequestModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: Optional[bool] = None


class HouseRuleResponse(ApiModel):
    id: int
    game_id: int
    title: str
    description: str
    category: Optional[str] = None
    is_active: bool
    created_at: str
    updated_at: str
