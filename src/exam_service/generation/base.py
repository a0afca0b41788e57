"""
Synthesizer contract shared by the remote and offline strategies.

This module defines:
- GenerationRequest: one batch as sent to a generative backend
- BatchContext: where a batch sits within a session
- ItemSynthesizer: abstract strategy turning plan items into raw items
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from pydantic import Field

from exam_service.core.constants import MAX_BATCH_SIZE
from exam_service.core.data_models import (
    CoreId,
    Difficulty,
    FrozenCamelModel,
    PlanItem,
    RawItem,
)


class BatchContext(FrozenCamelModel):
    core: CoreId
    session_id: str
    batch_index: int = Field(default=0, ge=0)


class GenerationRequest(FrozenCamelModel):
    """
    One batch of plan items for a generative backend.

    Attributes:
        core: Exam core.
        items: Between 1 and 20 plan items.
        difficulty: Requested difficulty.
        session_id: Owning session. Part of the cache fingerprint.
        batch_index: Position of the batch within the session.
    """

    core: CoreId
    items: list[PlanItem] = Field(min_length=1, max_length=MAX_BATCH_SIZE)
    difficulty: Difficulty = Difficulty.MEDIUM
    session_id: str = ""
    batch_index: int = Field(default=0, ge=0)

    @classmethod
    def from_batch(
        cls,
        plan_slice: Sequence[PlanItem],
        difficulty: Difficulty,
        context: BatchContext,
    ) -> "GenerationRequest":
        return cls(
            core=context.core,
            items=list(plan_slice),
            difficulty=difficulty,
            session_id=context.session_id,
            batch_index=context.batch_index,
        )


class ItemSynthesizer(ABC):
    """Turns a slice of the plan into one raw item per plan item."""

    @abstractmethod
    async def synthesize(
        self,
        plan_slice: Sequence[PlanItem],
        difficulty: Difficulty,
        context: BatchContext,
    ) -> list[RawItem]:
        """
        Produce raw items for ``plan_slice``.

        Args:
            plan_slice: Plan items to fill.
            difficulty: Requested difficulty.
            context: Core, session id and batch index.

        Returns:
            Exactly one RawItem per plan item.

        Raises:
            GenerationInvalid: Output failed validation after the retry.
            GenerationTransportFailure: Backend or network error.
        """
