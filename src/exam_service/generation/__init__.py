from exam_service.generation.base import (
    BatchContext,
    GenerationRequest,
    ItemSynthesizer,
)
from exam_service.generation.offline import OfflineSynthesizer
from exam_service.generation.orchestrator import (
    GenerationOutcome,
    GenerationStatus,
    run_generation,
)
from exam_service.generation.remote import RemoteSynthesizer
from exam_service.generation.state import GenerationState

__all__ = [
    "BatchContext",
    "GenerationOutcome",
    "GenerationRequest",
    "GenerationState",
    "GenerationStatus",
    "ItemSynthesizer",
    "OfflineSynthesizer",
    "RemoteSynthesizer",
    "run_generation",
]
