"""
Session assembly: plan -> raw items -> canonical session.
"""

import logging
import time

from numpy.random import Generator

from exam_service.catalogue.loader import ObjectiveCatalogue, coerce_core
from exam_service.core.constants import DEFAULT_BATCH_SIZE, EXAM_QUESTION_COUNT
from exam_service.core.data_models import CoreId, ExamSession, SessionConfig
from exam_service.core.exceptions import SessionIncomplete
from exam_service.core.utils import get_rng
from exam_service.generation.offline import OfflineSynthesizer, offline_seed
from exam_service.generation.state import (
    GenerationState,
    record_batch_success,
)
from exam_service.normalization import normalize_items
from exam_service.planning.plan_builder import build_plan

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError(f"value must be >= 0, got {value}")
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if value == 0:
            return "".join(reversed(digits))


def create_session_id(core: CoreId | str, rng: Generator | None = None) -> str:
    """``<core>-<base36 epoch millis>-<6 random base36 chars>``."""
    if rng is None:
        rng = get_rng()
    suffix = "".join(_BASE36[int(i)] for i in rng.integers(36, size=6))
    return f"{coerce_core(core)}-{to_base36(time.time_ns() // 1_000_000)}-{suffix}"


def start_generation(
    core: CoreId | str,
    config: SessionConfig,
    catalogue: ObjectiveCatalogue,
    session_id: str | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    rng: Generator | None = None,
    length: int = EXAM_QUESTION_COUNT,
) -> GenerationState:
    """Build the plan and the initial generation state for a new session."""
    core = coerce_core(core)
    if rng is None:
        rng = get_rng()
    if session_id is None:
        session_id = create_session_id(core, rng)

    plan = build_plan(core, config, catalogue, rng=rng, length=length)
    logger.info(f"Planned {len(plan)} questions for session {session_id}")
    return GenerationState(
        session_id=session_id,
        core=core,
        config=config,
        plan=plan,
        batch_size=batch_size,
    )


def finalize_session(
    state: GenerationState, rng: Generator | None = None
) -> ExamSession:
    """
    Normalize the collected items of a finished generation.

    Args:
        state: Generation state, expected to be complete.
        rng: Source of display permutations.

    Returns:
        The assembled session.

    Raises:
        SessionIncomplete: If fewer questions than planned came out.
    """
    questions = normalize_items(
        state.core, state.session_id, state.collected_items, rng
    )
    if len(questions) != len(state.plan):
        raise SessionIncomplete(expected=len(state.plan), actual=len(questions))

    return ExamSession(
        session_id=state.session_id,
        core=state.core,
        created_at=state.created_at,
        config=state.config,
        questions=questions,
    )


def assemble_offline_session(
    core: CoreId | str,
    config: SessionConfig,
    catalogue: ObjectiveCatalogue,
    session_id: str | None = None,
    rng: Generator | None = None,
    length: int = EXAM_QUESTION_COUNT,
) -> ExamSession:
    """
    Plan and fill a whole session with the offline synthesizer.

    Item content and display order depend only on the plan, the session id,
    the core and the difficulty.
    """
    state = start_generation(
        core, config, catalogue, session_id=session_id, rng=rng, length=length
    )
    items = OfflineSynthesizer(catalogue).build_items(
        state.core, state.session_id, config.difficulty, state.plan
    )
    state = record_batch_success(state, items)
    seed = offline_seed(state.session_id, state.core, config.difficulty)
    return finalize_session(state, rng=get_rng(seed))
