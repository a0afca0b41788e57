from collections import Counter

import pytest

from exam_service.catalogue.loader import get_default_catalogue
from exam_service.catalogue.pbq_templates import templates_for
from exam_service.core.data_models import (
    AnswerType,
    CoreId,
    Difficulty,
    PlanItem,
    RawChoiceItem,
    RawMatchItem,
    RawOrderItem,
    SessionConfig,
)
from exam_service.core.utils import get_rng
from exam_service.generation.base import BatchContext
from exam_service.generation.offline import (
    OfflineSynthesizer,
    build_distractor_pool,
    build_match,
    build_multi,
    build_order,
    build_single,
    offline_seed,
)
from exam_service.generation.validation import validate_batch
from exam_service.planning.plan_builder import build_plan


def _plan_item(
    answer_type: AnswerType, bullets: list[str] | None = None
) -> PlanItem:
    return PlanItem(
        domain_number="2.0",
        domain_label="Networking",
        objective_id="2.1",
        objective_title="Ports and protocols",
        objective_bullets=(
            bullets
            if bullets is not None
            else ["SSH on port 22", "DNS on port 53", "RDP on port 3389"]
        ),
        answer_type=answer_type,
    )


POOL = [f"Distractor {i}" for i in range(10)]


class TestItemBuilders:
    def test_single_has_one_listed_correct_option(self) -> None:
        item = build_single(_plan_item(AnswerType.SINGLE), POOL, get_rng(0))
        assert item.answer_type == "single"
        assert len(item.options) == 4
        assert len(set(item.options)) == 4
        assert len(item.correct_indices) == 1
        correct = item.options[item.correct_indices[0]]
        assert correct in _plan_item(AnswerType.SINGLE).objective_bullets
        assert '"Ports and protocols"' in item.prompt

    def test_single_without_bullets_uses_title(self) -> None:
        item = build_single(_plan_item(AnswerType.SINGLE, []), POOL, get_rng(0))
        assert item.options[item.correct_indices[0]] == "Ports and protocols"

    def test_multi_has_two_correct_options(self) -> None:
        plan_item = _plan_item(AnswerType.MULTI)
        item = build_multi(plan_item, POOL, get_rng(1))
        assert item.answer_type == "multi"
        assert len(item.options) == 5
        assert len(item.correct_indices) == 2
        assert item.prompt.startswith("Select ALL that apply.")
        for index in item.correct_indices:
            assert item.options[index] in plan_item.objective_bullets

    def test_multi_with_one_bullet_falls_back_to_single(self) -> None:
        item = build_multi(
            _plan_item(AnswerType.MULTI, ["Only one"]), POOL, get_rng(1)
        )
        assert item.answer_type == "single"

    def test_long_bullets_are_skipped(self) -> None:
        item = build_single(
            _plan_item(AnswerType.SINGLE, ["x" * 141, "Short bullet"]),
            POOL,
            get_rng(2),
        )
        assert item.options[item.correct_indices[0]] == "Short bullet"

    def test_order_encodes_template_sequence(self) -> None:
        template = templates_for(CoreId.CORE_1, AnswerType.PBQ_ORDER)[0]
        item = build_order(_plan_item(AnswerType.PBQ_ORDER), template, get_rng(3))
        assert sorted(item.order_items) == sorted(template.steps)
        assert [item.order_items[i] for i in item.correct_order] == list(
            template.steps
        )

    def test_match_encodes_template_pairs(self) -> None:
        template = templates_for(CoreId.CORE_2, AnswerType.PBQ_MATCH)[0]
        item = build_match(_plan_item(AnswerType.PBQ_MATCH), template, get_rng(4))
        assert item.left_label == template.left_label
        pairs = {
            (item.left[p.left_index], item.right[p.right_index])
            for p in item.correct_pairs
        }
        assert pairs == set(template.pairs)


class TestDistractorPool:
    def test_pool_is_deduplicated_and_short(self) -> None:
        pool = build_distractor_pool(get_default_catalogue(), CoreId.CORE_1)
        assert len(pool) == len(set(pool))
        assert all(0 < len(text) <= 120 for text in pool)


class TestOfflineSynthesizer:
    def _plan(self, core: CoreId, seed: int = 0) -> list[PlanItem]:
        return build_plan(
            core, SessionConfig(pbq_count=8), get_default_catalogue(), get_rng(seed)
        )

    def test_same_inputs_same_items(self) -> None:
        synthesizer = OfflineSynthesizer(get_default_catalogue())
        plan = self._plan(CoreId.CORE_1)
        first = synthesizer.build_items(CoreId.CORE_1, "s-1", Difficulty.MEDIUM, plan)
        second = synthesizer.build_items(CoreId.CORE_1, "s-1", Difficulty.MEDIUM, plan)
        assert first == second

    def test_session_id_changes_items(self) -> None:
        synthesizer = OfflineSynthesizer(get_default_catalogue())
        plan = self._plan(CoreId.CORE_1)
        first = synthesizer.build_items(CoreId.CORE_1, "s-1", Difficulty.MEDIUM, plan)
        second = synthesizer.build_items(CoreId.CORE_1, "s-2", Difficulty.MEDIUM, plan)
        assert first != second

    def test_seed_depends_on_difficulty(self) -> None:
        assert offline_seed("s", CoreId.CORE_1, Difficulty.EASY) != offline_seed(
            "s", CoreId.CORE_1, Difficulty.HARD
        )

    @pytest.mark.parametrize("core", list(CoreId))
    def test_one_item_per_plan_item(self, core: CoreId) -> None:
        plan = self._plan(core, seed=5)
        items = OfflineSynthesizer(get_default_catalogue()).build_items(
            core, "s-3", Difficulty.EASY, plan
        )
        assert len(items) == len(plan)
        # Items follow a shuffled plan, so compare as multisets.
        assert Counter(i.objective_id for i in items) == Counter(
            p.objective_id for p in plan
        )
        pbq_items = [i for i in items if isinstance(i, RawOrderItem | RawMatchItem)]
        assert len(pbq_items) == sum(1 for p in plan if p.answer_type.is_pbq)

    def test_pbq_type_follows_plan(self) -> None:
        plan = [_plan_item(AnswerType.PBQ_ORDER), _plan_item(AnswerType.PBQ_MATCH)]
        items = OfflineSynthesizer(get_default_catalogue()).build_items(
            CoreId.CORE_1, "s-4", Difficulty.MEDIUM, plan
        )
        assert sorted(i.answer_type for i in items) == ["pbq-match", "pbq-order"]

    def test_choice_items_pass_batch_validation(self) -> None:
        plan = [_plan_item(AnswerType.SINGLE), _plan_item(AnswerType.SINGLE)]
        items = OfflineSynthesizer(get_default_catalogue()).build_items(
            CoreId.CORE_1, "s-5", Difficulty.MEDIUM, plan
        )
        assert all(isinstance(i, RawChoiceItem) for i in items)
        validate_batch({"items": [i.model_dump(by_alias=True) for i in items]}, plan)

    @pytest.mark.asyncio
    async def test_synthesize_keeps_slice_order(self) -> None:
        synthesizer = OfflineSynthesizer(get_default_catalogue())
        plan = self._plan(CoreId.CORE_2)[:10]
        context = BatchContext(core=CoreId.CORE_2, session_id="s-6", batch_index=0)
        items = await synthesizer.synthesize(plan, Difficulty.MEDIUM, context)
        assert [i.objective_id for i in items] == [p.objective_id for p in plan]
        assert [i.answer_type for i in items] == [p.answer_type for p in plan]

    @pytest.mark.asyncio
    async def test_synthesize_is_deterministic_per_batch(self) -> None:
        synthesizer = OfflineSynthesizer(get_default_catalogue())
        plan = self._plan(CoreId.CORE_1)[:5]
        context = BatchContext(core=CoreId.CORE_1, session_id="s-7", batch_index=3)
        first = await synthesizer.synthesize(plan, Difficulty.HARD, context)
        second = await synthesizer.synthesize(plan, Difficulty.HARD, context)
        assert first == second

    @pytest.mark.asyncio
    async def test_batches_of_the_same_shape_draw_differently(self) -> None:
        synthesizer = OfflineSynthesizer(get_default_catalogue())
        plan = [_plan_item(AnswerType.SINGLE) for _ in range(6)]
        batches = [
            await synthesizer.synthesize(
                plan,
                Difficulty.MEDIUM,
                BatchContext(core=CoreId.CORE_1, session_id="s-8", batch_index=index),
            )
            for index in range(2)
        ]
        assert batches[0] != batches[1]
