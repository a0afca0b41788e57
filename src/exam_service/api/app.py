import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import cast

from fastapi import FastAPI, Request, Response
from pydantic import ValidationError
from starlette.types import ExceptionHandler

from exam_service.api.config import ServiceSettings
from exam_service.api.dependencies import (
    build_remote_synthesizer,
    build_repository,
    get_settings,
)
from exam_service.api.errors import (
    RateLimitExceededError,
    SessionConflictError,
    SessionNotFoundError,
    TooManyJobsError,
    generation_error_handler,
    invalid_allocation_handler,
    invalid_key_handler,
    rate_limit_exceeded_handler,
    session_conflict_handler,
    session_incomplete_handler,
    session_not_found_handler,
    too_many_jobs_handler,
    unhandled_exception_handler,
    unknown_core_handler,
    validation_error_handler,
)
from exam_service.api.jobs import GenerationJobManager
from exam_service.api.rate_limit import FixedWindowRateLimiter
from exam_service.api.routes import router
from exam_service.catalogue.loader import (
    ObjectiveCatalogue,
    get_default_catalogue,
)
from exam_service.core.exceptions import (
    GenerationError,
    InvalidAllocation,
    SessionIncomplete,
    UnknownCoreError,
)
from exam_service.generation.base import ItemSynthesizer
from exam_service.generation.cache import InMemoryResponseCache
from exam_service.persistence import ExamRepository, InvalidKeyError


def create_app(
    settings: ServiceSettings | None = None,
    repository: ExamRepository | None = None,
    catalogue: ObjectiveCatalogue | None = None,
    synthesizer_factory: Callable[[], ItemSynthesizer] | None = None,
) -> FastAPI:
    if settings is None:
        settings = get_settings()
    if repository is None:
        repository = build_repository(settings)
    if catalogue is None:
        catalogue = get_default_catalogue()

    cache = InMemoryResponseCache(ttl_seconds=settings.cache_ttl_seconds)
    remote_synthesizer = build_remote_synthesizer(settings, cache)
    if synthesizer_factory is None:

        def synthesizer_factory() -> ItemSynthesizer:
            return remote_synthesizer

    job_manager = GenerationJobManager(
        settings, repository, catalogue, synthesizer_factory
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await job_manager.shutdown()
        await app.state.remote_synthesizer.aclose()

    app = FastAPI(title="Practice Exam API", lifespan=lifespan)
    app.state.settings = settings
    app.state.repository = repository
    app.state.catalogue = catalogue
    app.state.response_cache = cache
    app.state.remote_synthesizer = remote_synthesizer
    app.state.rate_limiter = FixedWindowRateLimiter(
        limit=settings.rate_limit, window_seconds=settings.rate_window_seconds
    )
    app.state.job_manager = job_manager

    # Exception handlers; cast needed because FastAPI expects
    # (Request, Exception) but our handlers use specific exc types.
    handlers: list[tuple[type[Exception], object]] = [
        (SessionNotFoundError, session_not_found_handler),
        (SessionConflictError, session_conflict_handler),
        (TooManyJobsError, too_many_jobs_handler),
        (RateLimitExceededError, rate_limit_exceeded_handler),
        (UnknownCoreError, unknown_core_handler),
        (GenerationError, generation_error_handler),
        (SessionIncomplete, session_incomplete_handler),
        (InvalidAllocation, invalid_allocation_handler),
        (InvalidKeyError, invalid_key_handler),
        (ValidationError, validation_error_handler),
    ]
    for exc_type, handler in handlers:
        app.add_exception_handler(exc_type, cast(ExceptionHandler, handler))
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Request-ID middleware
    @app.middleware("http")
    async def request_id_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:12])
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(router)

    return app
