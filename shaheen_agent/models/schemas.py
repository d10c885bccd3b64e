from __future__ import annotations
from typing import List, Optional, Dict, Literal
from pydantic import BaseModel, Field


class ConversationRecord(BaseModel):
    id: str
    timestamp: str  # ISO-8601, UTC
    doc_type: str = ""
    user_input: str = ""
    generated_content: Optional[str] = None
    tags: List[str] = Field(default_factory=list, max_length=5)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    user_feedback: Optional[str] = None
    rated_at: Optional[str] = None


class SimilarRecord(ConversationRecord):
    similarity: float = 0.0


class RecordDraft(BaseModel):
    """Fields a caller may supply when saving; id and timestamp are assigned by the store."""

    doc_type: str = ""
    user_input: str = ""
    generated_content: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class RecordPatch(BaseModel):
    generated_content: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    user_feedback: Optional[str] = None
    rated_at: Optional[str] = None


class MemoryStats(BaseModel):
    total_conversations: int = 0
    doc_type_distribution: Dict[str, int] = Field(default_factory=dict)
    average_rating: float = 0.0
    most_used_doc_type: str = ""


class Message(BaseModel):
    id: int
    content: str
    is_user: bool = False
    kind: Literal["text", "document"] = "text"
    timestamp: str
    delay_ms: int = 0  # presentation pacing only


class ConversationState(BaseModel):
    session_id: Optional[str] = None
    doc_type: str
    stage: str
    questions: List[str] = Field(default_factory=list)
    answers: Dict[int, str] = Field(default_factory=dict)
    generated_content: str = ""
    error: str = ""
    record_id: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)


class ConversationStartRequest(BaseModel):
    doc_type: Optional[str] = None


class ConversationMessageRequest(BaseModel):
    text: str


class ConversationTurnResponse(BaseModel):
    session_id: str
    stage: str
    messages: List[Message]  # messages emitted by this call
    generated_content: str = ""
    record_id: Optional[str] = None


class FeedbackRequest(BaseModel):
    record_id: str
    rating: int = Field(ge=1, le=5)
    feedback: Optional[str] = None


class ImportResponse(BaseModel):
    imported: bool
    total_conversations: int


class HealthResponse(BaseModel):
    status: str = "ok"
    provider: str = ""
