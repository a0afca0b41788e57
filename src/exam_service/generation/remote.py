"""
Remote item synthesis: one validated backend call per batch.
"""

import logging
from collections.abc import Sequence

import httpx

from exam_service.core.constants import MAX_BATCH_SIZE, MAX_FEEDBACK_CHARS
from exam_service.core.data_models import Difficulty, PlanItem, RawItem
from exam_service.core.exceptions import (
    GenerationError,
    GenerationInvalid,
    GenerationTransportFailure,
)
from exam_service.generation.backends import GenerationBackend
from exam_service.generation.base import (
    BatchContext,
    GenerationRequest,
    ItemSynthesizer,
)
from exam_service.generation.cache import ResponseCache, request_fingerprint
from exam_service.generation.validation import (
    BatchValidationError,
    parse_batch,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class RemoteSynthesizer(ItemSynthesizer):
    """
    Requests batches from a generative backend.

    Each batch is validated strictly. A failed validation is retried once
    with the failure reason appended to the instructions; a second failure
    raises GenerationInvalid. Validated batches are cached by request
    fingerprint when a cache is provided.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        cache: ResponseCache | None = None,
        cache_ttl_seconds: float | None = None,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds

    async def synthesize(
        self,
        plan_slice: Sequence[PlanItem],
        difficulty: Difficulty,
        context: BatchContext,
    ) -> list[RawItem]:
        if len(plan_slice) > MAX_BATCH_SIZE:
            raise ValueError(
                f"Batch of {len(plan_slice)} items exceeds max={MAX_BATCH_SIZE}"
            )
        if not plan_slice:
            return []

        request = GenerationRequest.from_batch(plan_slice, difficulty, context)
        items, _ = await self.generate(request)
        return items

    async def generate(
        self, request: GenerationRequest
    ) -> tuple[list[RawItem], bool]:
        """
        Produce validated items for a request.

        Args:
            request: Batch of 1..20 plan items.

        Returns:
            Tuple of (items, cache_hit).

        Raises:
            GenerationInvalid: Both attempts failed validation.
            GenerationTransportFailure: Backend or network error.
        """
        fingerprint = request_fingerprint(request)
        if self._cache is not None:
            cached = self._cache.get(fingerprint)
            if cached is not None:
                logger.debug(
                    f"Cache hit for {request.session_id} batch {request.batch_index}"
                )
                return cached, True

        feedback: str | None = None
        last_error = ""
        for attempt in range(MAX_ATTEMPTS):
            try:
                text = await self._backend.generate(request, feedback)
            except GenerationError:
                raise
            except httpx.HTTPError as exc:
                raise GenerationTransportFailure(
                    f"Backend request failed: {exc}"
                ) from exc
            except Exception as exc:
                raise GenerationTransportFailure(
                    f"Backend call failed: {type(exc).__name__}: {exc}"
                ) from exc

            try:
                items = parse_batch(text, request.items)
            except BatchValidationError as exc:
                last_error = str(exc)
                feedback = last_error[:MAX_FEEDBACK_CHARS]
                logger.warning(
                    f"Invalid batch {request.batch_index} for "
                    f"{request.session_id} (attempt {attempt + 1}): {last_error}"
                )
                continue

            if self._cache is not None:
                self._cache.set(fingerprint, items, self._cache_ttl_seconds)
            return items, False

        raise GenerationInvalid(last_error)

    async def aclose(self) -> None:
        """Release the backend's HTTP client, if it holds one."""
        close = getattr(self._backend, "aclose", None)
        if close is not None:
            await close()
