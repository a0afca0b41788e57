from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from exam_service.core.constants import MAX_BATCH_SIZE
from exam_service.core.data_models import (
    CamelModel,
    CoreId,
    ExamResult,
    ExamSession,
    RawItem,
    SessionConfig,
)
from exam_service.generation.base import GenerationRequest

# --- Enums ---


class GenerationMode(StrEnum):
    REMOTE = "remote"
    OFFLINE = "offline"


class SessionStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    FAILED = "failed"
    READY = "ready"


# --- Request schemas ---

GenerateRequest = GenerationRequest


class CreateSessionRequest(CamelModel):
    core: CoreId
    config: SessionConfig = Field(default_factory=SessionConfig)
    mode: GenerationMode = GenerationMode.REMOTE
    batch_size: int | None = Field(default=None, ge=1, le=MAX_BATCH_SIZE)
    random_seed: int | None = None


class SubmitRequest(CamelModel):
    answers: dict[str, list[str]] = Field(default_factory=dict)
    auto_submitted: bool = False


# --- Response schemas ---


class GenerateResponse(BaseModel):
    items: list[RawItem]


class ErrorDetail(BaseModel):
    code: str
    message: str
    request_id: str | None = None


class GenerationProgress(CamelModel):
    done: int
    total: int
    message: str


class SessionCreatedResponse(CamelModel):
    session_id: str
    status: SessionStatus


class SessionStatusResponse(CamelModel):
    session_id: str
    core: CoreId
    status: SessionStatus
    progress: GenerationProgress | None = None
    error: ErrorDetail | None = None
    created_at: datetime
    session: ExamSession | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


__all__ = [
    "CreateSessionRequest",
    "ErrorDetail",
    "ExamResult",
    "GenerateRequest",
    "GenerateResponse",
    "GenerationMode",
    "GenerationProgress",
    "HealthResponse",
    "SessionCreatedResponse",
    "SessionStatus",
    "SessionStatusResponse",
    "SubmitRequest",
]
