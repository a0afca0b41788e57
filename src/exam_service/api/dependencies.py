from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version

from fastapi import Request

from exam_service.api.config import ServiceSettings
from exam_service.api.jobs import GenerationJobManager
from exam_service.api.rate_limit import FixedWindowRateLimiter
from exam_service.core.paths import get_project_version
from exam_service.generation.backends import OpenAIResponsesBackend
from exam_service.generation.cache import InMemoryResponseCache
from exam_service.generation.remote import RemoteSynthesizer
from exam_service.persistence import (
    BlobStore,
    ExamRepository,
    FileBlobStore,
    InMemoryBlobStore,
)

DISTRIBUTION_NAME = "exam-service"


@lru_cache(maxsize=1)
def get_settings() -> ServiceSettings:
    return ServiceSettings()


def build_repository(settings: ServiceSettings) -> ExamRepository:
    store: BlobStore
    if settings.data_dir is None:
        store = InMemoryBlobStore()
    else:
        store = FileBlobStore(settings.data_dir)
    return ExamRepository(store)


def build_remote_synthesizer(
    settings: ServiceSettings, cache: InMemoryResponseCache
) -> RemoteSynthesizer:
    backend = OpenAIResponsesBackend(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        temperature=settings.temperature,
        max_output_tokens=settings.max_output_tokens,
        timeout_seconds=settings.request_timeout_seconds,
    )
    return RemoteSynthesizer(
        backend, cache=cache, cache_ttl_seconds=settings.cache_ttl_seconds
    )


def get_job_manager(request: Request) -> GenerationJobManager:
    manager: GenerationJobManager = request.app.state.job_manager
    return manager


def get_remote_synthesizer(request: Request) -> RemoteSynthesizer:
    synthesizer: RemoteSynthesizer = request.app.state.remote_synthesizer
    return synthesizer


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    limiter: FixedWindowRateLimiter = request.app.state.rate_limiter
    return limiter


def get_repository(request: Request) -> ExamRepository:
    repository: ExamRepository = request.app.state.repository
    return repository


def get_version() -> str:
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return get_project_version()
