"""Game and rules-document request/response schemas."""

from typing import Optional

from pydantic import Field

from atlas.schemas.common import ApiModel, RequestModel


class GameCreate(RequestModel):
    name: str
    description: Optional[str] = None
    publisher: Optional[str] = None
    year_published: Optional[int] = None
    min_players: Optional[int] = Field(default=None, ge=1)
    max_players: Optional[int] = Field(default=None, ge=1)
    play_time_minutes: Optional[int] = Field(default=None, ge=0)
    complexity_rating: Optional[float] = None
    bgg_id: Optional[int] = None


class GameUpdate(RequestModel):
    name: Optional[str] = None
    description: Optional[str] = None
    publisher: Optional[str] = None
    year_published: Optional[int] = None
    min_players: Optional[int] = Field(default=None, ge=1)
    max_players: Optional[int] = Field(default=None, ge=1)
    play_time_minutes: Optional[int] = Field(default=None, ge=0)
    complexity_rating: Optional[float] = None
    bgg_id: Optional[int] = None


class GameResponse(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    publisher: Optional[str] = None
    year_published: Optional[int] = None
    min_players: Optional[int] = None
    max_players: Optional[int] = None
    play_time_minutes: Optional[int] = None
    complexity_rating: Optional[float] = None
    bgg_id: Optional[int] = None
    rules_pdf_path: Optional[str] = None
    rules_text: Optional[str] = None
    created_at: str
    updated_at: str


class GameSummary(ApiModel):
    id: int
    name: str
    publisher: Optional[str] = None
    year_published: Optional[int] = None
    min_players: Optional[int] = None
    max_players: Optional[int] = None
    complexity_rating: Optional[float] = None
    has_rules_pdf: bool
    house_rules_count: int = 0


class UploadResponse(ApiModel):
    message: str
    game_id: int
    file_path: Optional[str] = None
    chunks_processed: int
    total_text_length: int


class RulesInfoResponse(ApiModel):
    game_id: int
    has_rules_pdf: bool
    rules_pdf_path: Optional[str] = None
    chunk_count: int
    text_length: int
    last_processed: Optional[str] = None


class DeleteRulesResponse(ApiModel):
    game_id: int
    message: str
    embeddings_deleted: int
    file_deleted: bool
