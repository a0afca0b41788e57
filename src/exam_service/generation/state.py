"""
Resumable generation state and its pure transitions.

A GenerationState is replaced, never mutated: every batch success or
failure yields a new, re-validated state that can be checkpointed.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import Field, model_validator

from exam_service.core.constants import DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE
from exam_service.core.data_models import (
    CoreId,
    FrozenCamelModel,
    PlanItem,
    RawItem,
    SessionConfig,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class GenerationState(FrozenCamelModel):
    """
    Progress of one session's generation.

    Attributes:
        session_id: Owning session.
        core: Exam core.
        config: Session configuration.
        plan: Full plan, in order.
        collected_items: Validated items for ``plan[:next_plan_index]``.
        next_plan_index: First plan index not yet generated.
        batch_size: Plan items per backend call, 1..20.
        last_error: Message of the last failed batch, cleared on success.
        created_at: When generation was requested.
    """

    session_id: str
    core: CoreId
    config: SessionConfig
    plan: list[PlanItem]
    collected_items: list[RawItem] = Field(default_factory=list)
    next_plan_index: int = 0
    batch_size: int = DEFAULT_BATCH_SIZE
    last_error: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def check_progress(self) -> "GenerationState":
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(
                f"batch_size must be in [1, {MAX_BATCH_SIZE}], got {self.batch_size}"
            )
        if not 0 <= self.next_plan_index <= len(self.plan):
            raise ValueError(
                f"next_plan_index={self.next_plan_index} outside [0, {len(self.plan)}]"
            )
        if len(self.collected_items) != self.next_plan_index:
            raise ValueError(
                f"{len(self.collected_items)} collected items but "
                f"next_plan_index={self.next_plan_index}"
            )
        return self

    @property
    def total(self) -> int:
        return len(self.plan)

    @property
    def is_complete(self) -> bool:
        return self.next_plan_index >= len(self.plan)

    @property
    def batch_index(self) -> int:
        return self.next_plan_index // self.batch_size

    def next_batch(self) -> list[PlanItem]:
        start = self.next_plan_index
        return self.plan[start : start + self.batch_size]


def _replace(state: GenerationState, **changes: Any) -> GenerationState:
    return GenerationState.model_validate({**dict(state), **changes})


def record_batch_success(
    state: GenerationState, items: list[RawItem]
) -> GenerationState:
    """Append a validated batch and advance the plan index."""
    return _replace(
        state,
        collected_items=[*state.collected_items, *items],
        next_plan_index=state.next_plan_index + len(items),
        last_error=None,
    )


def record_batch_failure(state: GenerationState, message: str) -> GenerationState:
    """Keep progress, remember why the batch failed."""
    return _replace(state, last_error=message)
