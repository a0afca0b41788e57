import asyncio
from collections.abc import Sequence

import httpx
import pytest

from exam_service.core.data_models import (
    AnswerType,
    CoreId,
    Difficulty,
    PlanItem,
    RawChoiceItem,
    RawItem,
    SessionConfig,
)
from exam_service.core.exceptions import (
    GenerationError,
    GenerationTransportFailure,
)
from exam_service.generation.backends import OpenAIResponsesBackend
from exam_service.generation.base import BatchContext, ItemSynthesizer
from exam_service.generation.orchestrator import GenerationStatus, run_generation
from exam_service.generation.remote import RemoteSynthesizer
from exam_service.generation.state import GenerationState


def _plan(n: int) -> list[PlanItem]:
    return [
        PlanItem(
            domain_number="2.0",
            domain_label="Networking",
            objective_id=f"2.{i + 1}",
            objective_title=f"Objective 2.{i + 1}",
            answer_type=AnswerType.SINGLE,
        )
        for i in range(n)
    ]


def _state(n: int = 7, batch_size: int = 3) -> GenerationState:
    return GenerationState(
        session_id="s-1",
        core=CoreId.CORE_1,
        config=SessionConfig(difficulty=Difficulty.HARD),
        plan=_plan(n),
        batch_size=batch_size,
    )


class ScriptedSynthesizer(ItemSynthesizer):
    """Echoes the plan; fails or blocks on chosen batch indices."""

    def __init__(
        self,
        failures: dict[int, GenerationError] | None = None,
        block_at: int | None = None,
        short_at: int | None = None,
    ) -> None:
        self.failures = dict(failures or {})
        self.block_at = block_at
        self.short_at = short_at
        self.calls: list[BatchContext] = []
        self.difficulties: list[Difficulty] = []
        self.entered_block = asyncio.Event()

    async def synthesize(
        self,
        plan_slice: Sequence[PlanItem],
        difficulty: Difficulty,
        context: BatchContext,
    ) -> list[RawItem]:
        self.calls.append(context)
        self.difficulties.append(difficulty)
        if context.batch_index == self.block_at:
            self.entered_block.set()
            await asyncio.Event().wait()
        error = self.failures.pop(context.batch_index, None)
        if error is not None:
            raise error
        items: list[RawItem] = [
            RawChoiceItem(
                domain=p.domain,
                objective_id=p.objective_id,
                objective_title=p.objective_title,
                prompt=f"Q {p.objective_id}",
                explanation="e",
                answer_type="single",
                options=["a", "b", "c", "d"],
                correct_indices=[0],
            )
            for p in plan_slice
        ]
        if context.batch_index == self.short_at:
            return items[:-1]
        return items


class RecordingStore:
    def __init__(self) -> None:
        self.saved: list[GenerationState] = []

    def save_generation_state(self, state: GenerationState) -> None:
        self.saved.append(state)


class TestRunGeneration:
    @pytest.mark.asyncio
    async def test_completes_in_batches(self) -> None:
        synthesizer = ScriptedSynthesizer()
        store = RecordingStore()
        progress: list[tuple[int, int, str]] = []

        outcome = await run_generation(
            _state(),
            synthesizer,
            store,
            progress_callback=lambda d, t, m: progress.append((d, t, m)),
        )

        assert outcome.status == GenerationStatus.COMPLETED
        assert outcome.state.is_complete
        assert [c.batch_index for c in synthesizer.calls] == [0, 1, 2]
        assert set(synthesizer.difficulties) == {Difficulty.HARD}
        assert [s.next_plan_index for s in store.saved] == [3, 6, 7]
        assert [d for d, _, _ in progress] == [0, 3, 6, 7]
        assert all(t == 7 for _, t, _ in progress)

    @pytest.mark.asyncio
    async def test_failure_keeps_progress_and_resume_does_not_duplicate(self) -> None:
        synthesizer = ScriptedSynthesizer(
            failures={1: GenerationTransportFailure("backend down")}
        )
        store = RecordingStore()

        outcome = await run_generation(_state(), synthesizer, store)

        assert outcome.status == GenerationStatus.FAILED
        assert isinstance(outcome.error, GenerationTransportFailure)
        assert outcome.state.next_plan_index == 3
        assert outcome.state.last_error == "backend down"
        assert store.saved[-1] == outcome.state

        resumed = await run_generation(outcome.state, synthesizer, store)

        assert resumed.status == GenerationStatus.COMPLETED
        assert resumed.state.last_error is None
        assert [i.prompt for i in resumed.state.collected_items] == [
            f"Q 2.{i + 1}" for i in range(7)
        ]
        assert [c.batch_index for c in synthesizer.calls] == [0, 1, 1, 2]

    @pytest.mark.asyncio
    async def test_html_gateway_page_fails_with_checkpoint(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(
                    200, text="<html>Bad Gateway page</html>"
                )
            ),
            base_url="https://api.test",
        )
        backend = OpenAIResponsesBackend(api_key="sk-test", client=client)
        store = RecordingStore()

        outcome = await run_generation(_state(), RemoteSynthesizer(backend), store)
        await backend.aclose()

        assert outcome.status == GenerationStatus.FAILED
        assert isinstance(outcome.error, GenerationTransportFailure)
        assert outcome.state.next_plan_index == 0
        assert outcome.state.last_error is not None
        assert "non-JSON" in outcome.state.last_error
        assert store.saved[-1] == outcome.state

    @pytest.mark.asyncio
    async def test_short_batch_fails(self) -> None:
        outcome = await run_generation(_state(), ScriptedSynthesizer(short_at=0))
        assert outcome.status == GenerationStatus.FAILED
        assert outcome.state.next_plan_index == 0
        assert outcome.state.last_error is not None

    @pytest.mark.asyncio
    async def test_preset_cancel_event_pauses_immediately(self) -> None:
        cancel_event = asyncio.Event()
        cancel_event.set()
        synthesizer = ScriptedSynthesizer()
        outcome = await run_generation(
            _state(), synthesizer, cancel_event=cancel_event
        )
        assert outcome.status == GenerationStatus.PAUSED
        assert synthesizer.calls == []

    @pytest.mark.asyncio
    async def test_cancel_event_abandons_in_flight_batch(self) -> None:
        synthesizer = ScriptedSynthesizer(block_at=1)
        store = RecordingStore()
        cancel_event = asyncio.Event()

        task = asyncio.create_task(
            run_generation(_state(), synthesizer, store, cancel_event=cancel_event)
        )
        await synthesizer.entered_block.wait()
        cancel_event.set()
        outcome = await task

        assert outcome.status == GenerationStatus.PAUSED
        assert outcome.error is None
        assert outcome.state.next_plan_index == 3
        assert outcome.state.last_error is None
        assert store.saved[-1].next_plan_index == 3

    @pytest.mark.asyncio
    async def test_task_cancellation_checkpoints_and_propagates(self) -> None:
        synthesizer = ScriptedSynthesizer(block_at=2)
        store = RecordingStore()

        task = asyncio.create_task(run_generation(_state(), synthesizer, store))
        await synthesizer.entered_block.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.saved[-1].next_plan_index == 6

    @pytest.mark.asyncio
    async def test_complete_state_is_a_no_op(self) -> None:
        first = await run_generation(_state(), ScriptedSynthesizer())
        synthesizer = ScriptedSynthesizer()
        again = await run_generation(first.state, synthesizer)
        assert again.status == GenerationStatus.COMPLETED
        assert synthesizer.calls == []
