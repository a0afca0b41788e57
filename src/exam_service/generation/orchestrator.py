"""
Sequential, resumable batch generation.

``run_generation`` walks the plan from ``next_plan_index`` one batch at a
time, checkpointing the state after every transition. It returns on
completion, on the first failed batch, or when the caller's cancel event
is set; the returned state can be passed back in to resume.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TypeVar

from exam_service.core.data_models import RawItem
from exam_service.core.exceptions import (
    GenerationCancelled,
    GenerationError,
    GenerationInvalid,
)
from exam_service.generation.base import BatchContext, ItemSynthesizer
from exam_service.generation.state import (
    GenerationState,
    record_batch_failure,
    record_batch_success,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int, str], None]


class GenerationStatus(StrEnum):
    COMPLETED = "completed"
    PAUSED = "paused"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationOutcome:
    status: GenerationStatus
    state: GenerationState
    error: GenerationError | None = None


class GenerationStore(Protocol):
    def save_generation_state(self, state: GenerationState) -> None: ...


async def _await_unless_cancelled(
    awaitable: Awaitable[T], cancel_event: asyncio.Event | None
) -> T:
    """Await ``awaitable``; cancel it and raise GenerationCancelled if the event fires first."""
    if cancel_event is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if task.done():
            return task.result()
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()

    await asyncio.gather(task, return_exceptions=True)
    raise GenerationCancelled()


async def run_generation(
    state: GenerationState,
    synthesizer: ItemSynthesizer,
    store: GenerationStore | None = None,
    progress_callback: ProgressCallback | None = None,
    cancel_event: asyncio.Event | None = None,
) -> GenerationOutcome:
    """
    Generate the remaining batches of a session.

    Args:
        state: State to resume from. A fresh state starts at index 0.
        synthesizer: Strategy producing raw items per batch.
        store: Checkpoint target, called after every transition.
        progress_callback: Called with (done, total, message).
        cancel_event: When set, the in-flight batch is abandoned and the
            run pauses.

    Returns:
        Outcome carrying the latest state. FAILED outcomes carry the error.

    Raises:
        asyncio.CancelledError: If the surrounding task is cancelled. The
            state is checkpointed first.
    """

    def checkpoint(current: GenerationState) -> None:
        if store is not None:
            store.save_generation_state(current)

    def report(current: GenerationState, message: str) -> None:
        if progress_callback is not None:
            progress_callback(current.next_plan_index, current.total, message)

    report(state, "Starting generation")

    while not state.is_complete:
        if cancel_event is not None and cancel_event.is_set():
            checkpoint(state)
            report(state, "Paused")
            return GenerationOutcome(GenerationStatus.PAUSED, state)

        batch = state.next_batch()
        context = BatchContext(
            core=state.core,
            session_id=state.session_id,
            batch_index=state.batch_index,
        )
        try:
            items: list[RawItem] = await _await_unless_cancelled(
                synthesizer.synthesize(batch, state.config.difficulty, context),
                cancel_event,
            )
            if len(items) != len(batch):
                raise GenerationInvalid(
                    f"Synthesizer returned {len(items)} items for a batch of {len(batch)}."
                )
        except GenerationCancelled:
            checkpoint(state)
            report(state, "Paused")
            return GenerationOutcome(GenerationStatus.PAUSED, state)
        except GenerationError as exc:
            logger.warning(
                f"Generation for {state.session_id} failed at batch "
                f"{context.batch_index}: {exc.message}"
            )
            state = record_batch_failure(state, exc.message)
            checkpoint(state)
            report(state, f"Failed: {exc.message}")
            return GenerationOutcome(GenerationStatus.FAILED, state, exc)
        except asyncio.CancelledError:
            checkpoint(state)
            raise

        state = record_batch_success(state, items)
        checkpoint(state)
        report(state, f"Generated {state.next_plan_index}/{state.total} questions")

    return GenerationOutcome(GenerationStatus.COMPLETED, state)
