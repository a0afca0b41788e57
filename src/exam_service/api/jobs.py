import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from exam_service.analytics import build_attempt
from exam_service.api.config import ServiceSettings
from exam_service.api.errors import (
    SessionConflictError,
    SessionNotFoundError,
    TooManyJobsError,
)
from exam_service.api.schemas import (
    CreateSessionRequest,
    ErrorDetail,
    GenerationMode,
    GenerationProgress,
    SessionCreatedResponse,
    SessionStatus,
    SessionStatusResponse,
)
from exam_service.assembly import (
    assemble_offline_session,
    finalize_session,
    start_generation,
)
from exam_service.catalogue.loader import ObjectiveCatalogue
from exam_service.core.data_models import CoreId, ExamResult
from exam_service.core.exceptions import SessionIncomplete
from exam_service.core.utils import get_rng
from exam_service.generation.base import ItemSynthesizer
from exam_service.generation.orchestrator import (
    GenerationStatus,
    run_generation,
)
from exam_service.generation.state import GenerationState, record_batch_failure
from exam_service.persistence import ExamRepository
from exam_service.scoring import score_exam

logger = logging.getLogger(__name__)


@dataclass
class GenerationJob:
    session_id: str
    core: CoreId
    status: SessionStatus
    created_at: datetime
    progress: GenerationProgress | None = None
    error: ErrorDetail | None = None
    completed_at: datetime | None = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def is_running(self) -> bool:
        return self.task is not None and not self.task.done()


class GenerationJobManager:
    """
    Runs session generation in background tasks.

    At most one run per session id is active at a time; the number of
    concurrent runs is bounded by ``max_concurrent_jobs``.
    """

    def __init__(
        self,
        settings: ServiceSettings,
        repository: ExamRepository,
        catalogue: ObjectiveCatalogue,
        synthesizer_factory: Callable[[], ItemSynthesizer],
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._catalogue = catalogue
        self._synthesizer_factory = synthesizer_factory
        self._jobs: dict[str, GenerationJob] = {}
        self._semaphore = asyncio.Semaphore(settings.max_concurrent_jobs)

    def create(self, request: CreateSessionRequest) -> SessionCreatedResponse:
        rng = get_rng(request.random_seed)

        if request.mode == GenerationMode.OFFLINE:
            session = assemble_offline_session(
                request.core, request.config, self._catalogue, rng=rng
            )
            self._repository.save_session(session)
            logger.info(f"Assembled offline session {session.session_id}")
            return SessionCreatedResponse(
                session_id=session.session_id, status=SessionStatus.READY
            )

        if self._semaphore.locked():
            raise TooManyJobsError

        state = start_generation(
            request.core,
            request.config,
            self._catalogue,
            batch_size=request.batch_size or self._settings.batch_size,
            rng=rng,
        )
        self._repository.save_generation_state(state)
        job = self._launch(state)
        return SessionCreatedResponse(
            session_id=state.session_id, status=job.status
        )

    def resume(self, session_id: str) -> SessionStatusResponse:
        job = self._jobs.get(session_id)
        if job is not None and job.is_running:
            raise SessionConflictError(
                session_id, f"Generation already running for {session_id}"
            )

        state = self._repository.load_generation_state(session_id)
        if state is None:
            if self._repository.load_session(session_id) is not None:
                return self.get_status(session_id)
            raise SessionNotFoundError(session_id)

        if self._semaphore.locked():
            raise TooManyJobsError

        self._launch(state)
        return self.get_status(session_id)

    def pause(self, session_id: str) -> SessionStatusResponse:
        job = self._jobs.get(session_id)
        if job is not None and job.is_running:
            job.cancel_event.set()
        return self.get_status(session_id)

    async def discard(self, session_id: str) -> None:
        job = self._jobs.pop(session_id, None)
        if job is not None and job.is_running:
            assert job.task is not None
            job.task.cancel()
            # The cancelled run checkpoints once more before exiting.
            await asyncio.gather(job.task, return_exceptions=True)
        removed = self._repository.discard_session(session_id)
        if job is None and not removed:
            raise SessionNotFoundError(session_id)

    def get_status(self, session_id: str) -> SessionStatusResponse:
        session = self._repository.load_session(session_id)
        job = self._jobs.get(session_id)

        if session is not None:
            return SessionStatusResponse(
                session_id=session_id,
                core=session.core,
                status=SessionStatus.READY,
                progress=job.progress if job else None,
                created_at=session.created_at,
                session=session,
            )

        if job is not None:
            return SessionStatusResponse(
                session_id=session_id,
                core=job.core,
                status=job.status,
                progress=job.progress,
                error=job.error,
                created_at=job.created_at,
            )

        state = self._repository.load_generation_state(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return SessionStatusResponse(
            session_id=session_id,
            core=state.core,
            status=(
                SessionStatus.FAILED if state.last_error else SessionStatus.PAUSED
            ),
            progress=GenerationProgress(
                done=state.next_plan_index,
                total=state.total,
                message="Paused",
            ),
            error=(
                ErrorDetail(code="GENERATION_FAILED", message=state.last_error)
                if state.last_error
                else None
            ),
            created_at=state.created_at,
        )

    def submit(
        self,
        session_id: str,
        answers: dict[str, list[str]],
        auto_submitted: bool = False,
    ) -> ExamResult:
        session = self._repository.load_session(session_id)
        if session is None:
            if self._repository.load_generation_state(session_id) is not None:
                raise SessionConflictError(
                    session_id, f"Session {session_id} is still generating"
                )
            raise SessionNotFoundError(session_id)

        result = score_exam(session, answers)
        self._repository.save_result(session_id, result)
        self._repository.save_attempt(
            build_attempt(session, result, auto_submitted=auto_submitted)
        )
        return result

    def _launch(self, state: GenerationState) -> GenerationJob:
        job = GenerationJob(
            session_id=state.session_id,
            core=state.core,
            status=SessionStatus.PENDING,
            created_at=state.created_at,
            progress=GenerationProgress(
                done=state.next_plan_index, total=state.total, message="Queued"
            ),
        )
        self._jobs[state.session_id] = job
        job.task = asyncio.create_task(self._run_job(job, state))
        return job

    async def _run_job(self, job: GenerationJob, state: GenerationState) -> None:
        async with self._semaphore:
            job.status = SessionStatus.RUNNING
            job.error = None

            def progress_cb(done: int, total: int, message: str) -> None:
                job.progress = GenerationProgress(
                    done=done, total=total, message=message
                )

            try:
                outcome = await run_generation(
                    state,
                    self._synthesizer_factory(),
                    store=self._repository,
                    progress_callback=progress_cb,
                    cancel_event=job.cancel_event,
                )

                if outcome.status == GenerationStatus.COMPLETED:
                    session = finalize_session(outcome.state)
                    self._repository.save_session(session)
                    self._repository.delete_generation_state(job.session_id)
                    job.status = SessionStatus.READY
                elif outcome.status == GenerationStatus.PAUSED:
                    job.status = SessionStatus.PAUSED
                else:
                    job.status = SessionStatus.FAILED
                    assert outcome.error is not None
                    job.error = ErrorDetail(
                        code=outcome.error.code, message=outcome.error.message
                    )

            except SessionIncomplete as exc:
                message = f"{exc} Discard the session and start a new one."
                self._record_failure(job, "SESSION_INCOMPLETE", message)

            except Exception:
                logger.exception(f"Generation job {job.session_id} failed")
                self._record_failure(
                    job, "INTERNAL_ERROR", "Internal error during generation"
                )

            finally:
                job.completed_at = datetime.now(UTC)

    def _record_failure(self, job: GenerationJob, code: str, message: str) -> None:
        job.status = SessionStatus.FAILED
        job.error = ErrorDetail(code=code, message=message)

        # Keep the last checkpoint's progress and store why the run stopped.
        state = self._repository.load_generation_state(job.session_id)
        if state is not None:
            self._repository.save_generation_state(
                record_batch_failure(state, message)
            )

    async def shutdown(self) -> None:
        tasks = [j.task for j in self._jobs.values() if j.task and not j.task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
