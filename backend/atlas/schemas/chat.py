"""Chat and search request/response schemas."""

from typing import Optional

from atlas.schemas.common import ApiModel, RequestModel


class ChatSessionCreate(RequestModel):
    game_id: int
    title: Optional[str] = None


class ChatRequest(RequestModel):
    session_id: int
    message: str


class ChatSessionResponse(ApiModel):
    id: int
    game_id: int
    title: Optional[str] = None
    created_at: str
    updated_at: str


class ChatSessionSummary(ApiModel):
    id: int
    game_id: int
    title: Optional[str] = None
    message_count: int
    last_message_at: Optional[str] = None
    created_at: str


class ContextSource(ApiModel):
    embedding_id: int
    chunk_text: str
    chunk_index: int
    source_type: str
    source_id: Optional[int] = None
    similarity_score: float
    metadata: Optional[str] = None


class ChatMessageResponse(ApiModel):
    id: int
    session_id: int
    role: str
    content: str
    context_chunks: Optional[list[int]] = None
    context_sources: list[ContextSource] = []
    created_at: str


class ChatHistory(ApiModel):
    session: ChatSessionResponse
    messages: list[ChatMessageResponse]


class ChatResponse(ApiModel):
    message: ChatMessageResponse
    context_sources: list[ContextSource]


class SearchResult(ContextSource):
    pass


class RulesSearchResponse(ApiModel):
    game_id: int
    query: str
    results: list[SearchResult]
    total_results: int
