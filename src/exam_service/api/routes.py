from fastapi import APIRouter, Depends, Request, Response

from exam_service.analytics import AnalyticsSummary, aggregate_attempts
from exam_service.api.dependencies import (
    get_job_manager,
    get_rate_limiter,
    get_remote_synthesizer,
    get_repository,
    get_version,
)
from exam_service.api.errors import RateLimitExceededError
from exam_service.api.jobs import GenerationJobManager
from exam_service.api.rate_limit import FixedWindowRateLimiter
from exam_service.api.schemas import (
    CreateSessionRequest,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    SessionCreatedResponse,
    SessionStatusResponse,
    SubmitRequest,
)
from exam_service.core.data_models import CoreId, ExamResult
from exam_service.generation.remote import RemoteSynthesizer
from exam_service.persistence import ExamRepository

router = APIRouter(prefix="/api/v1")


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


@router.post("/generate")
async def generate_items(
    body: GenerateRequest,
    request: Request,
    response: Response,
    rate_limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    synthesizer: RemoteSynthesizer = Depends(get_remote_synthesizer),
) -> GenerateResponse:
    decision = rate_limiter.hit(_client_key(request))
    if not decision.allowed:
        raise RateLimitExceededError(decision)

    items, cache_hit = await synthesizer.generate(body)
    response.headers.update(decision.headers())
    response.headers["X-Cache"] = "HIT" if cache_hit else "MISS"
    return GenerateResponse(items=items)


@router.post("/sessions", status_code=202)
async def create_session(
    body: CreateSessionRequest,
    job_manager: GenerationJobManager = Depends(get_job_manager),
) -> SessionCreatedResponse:
    return job_manager.create(body)


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    job_manager: GenerationJobManager = Depends(get_job_manager),
) -> SessionStatusResponse:
    return job_manager.get_status(session_id)


@router.post("/sessions/{session_id}/resume", status_code=202)
async def resume_session(
    session_id: str,
    job_manager: GenerationJobManager = Depends(get_job_manager),
) -> SessionStatusResponse:
    return job_manager.resume(session_id)


@router.delete("/sessions/{session_id}/generation")
async def pause_generation(
    session_id: str,
    job_manager: GenerationJobManager = Depends(get_job_manager),
) -> SessionStatusResponse:
    return job_manager.pause(session_id)


@router.delete("/sessions/{session_id}", status_code=204)
async def discard_session(
    session_id: str,
    job_manager: GenerationJobManager = Depends(get_job_manager),
) -> Response:
    await job_manager.discard(session_id)
    return Response(status_code=204)


@router.post("/sessions/{session_id}/submit")
async def submit_session(
    session_id: str,
    body: SubmitRequest,
    job_manager: GenerationJobManager = Depends(get_job_manager),
) -> ExamResult:
    return job_manager.submit(
        session_id, body.answers, auto_submitted=body.auto_submitted
    )


@router.get("/analytics")
async def get_analytics(
    core: CoreId | None = None,
    repository: ExamRepository = Depends(get_repository),
) -> AnalyticsSummary:
    return aggregate_attempts(repository.list_attempts(), core=core)


@router.get("/health")
async def health_check(
    version: str = Depends(get_version),
) -> HealthResponse:
    return HealthResponse(version=version)
