"""
Deterministic offline item synthesis.

Items are derived from the local catalogue: choice questions ask which
bullet belongs to an objective (distractors come from other objectives)
and PBQs are drawn from fixed templates. All randomness comes from a
numpy Generator seeded with the FNV-1a hash of
``"<sessionId>:<core>:<difficulty>"``, so identical inputs always give
identical items. Batch-by-batch synthesis appends the batch index to
that key.
"""

import logging
from collections.abc import Sequence

from numpy.random import Generator

from exam_service.catalogue.loader import ObjectiveCatalogue, coerce_core
from exam_service.catalogue.pbq_templates import (
    MATCH_EXPLANATION,
    ORDER_EXPLANATION,
    MatchTemplate,
    OrderTemplate,
    templates_for,
)
from exam_service.core.constants import (
    BULLET_TEXT_MAX_CHARS,
    POOL_TEXT_MAX_CHARS,
)
from exam_service.core.data_models import (
    AnswerType,
    CoreId,
    Difficulty,
    MatchPair,
    PlanItem,
    RawChoiceItem,
    RawItem,
    RawMatchItem,
    RawOrderItem,
)
from exam_service.core.utils import (
    fnv1a_32,
    get_rng,
    pick_one,
    sanitize_text,
    shuffled,
    take_distinct,
)
from exam_service.generation.base import BatchContext, ItemSynthesizer

logger = logging.getLogger(__name__)

SINGLE_OPTION_CAP = 4
MULTI_OPTION_CAP = 5
DISTRACTOR_COUNT = 3
MULTI_CORRECT_COUNT = 2


def offline_seed(session_id: str, core: CoreId | str, difficulty: Difficulty | str) -> int:
    return fnv1a_32(f"{session_id}:{core}:{difficulty}")


def _unique(values: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(values))


def build_distractor_pool(catalogue: ObjectiveCatalogue, core: CoreId) -> list[str]:
    """Short, de-duplicated bullets across the whole core; titles if none qualify."""
    pool = _unique(
        [
            text
            for text in map(sanitize_text, catalogue.bullet_pool(core))
            if text and len(text) <= POOL_TEXT_MAX_CHARS
        ]
    )
    if pool:
        return pool

    titles = []
    for objective_id in catalogue.list_objective_ids(core):
        meta = catalogue.get_objective_meta(core, objective_id)
        titles.append(sanitize_text(meta.title if meta else objective_id))
    return _unique([t for t in titles if t])


def _usable_bullets(item: PlanItem) -> list[str]:
    return _unique(
        [
            text
            for text in map(sanitize_text, item.objective_bullets)
            if text and len(text) <= BULLET_TEXT_MAX_CHARS
        ]
    )


def _common_fields(item: PlanItem) -> dict[str, object]:
    return {
        "domain": item.domain,
        "objective_id": item.objective_id,
        "objective_title": item.objective_title,
        "objective_bullets": list(item.objective_bullets),
    }


def build_single(item: PlanItem, pool: list[str], rng: Generator) -> RawChoiceItem:
    bullets = _usable_bullets(item)
    title = sanitize_text(item.objective_title)
    correct = pick_one(rng, bullets) if bullets else title
    distractors = take_distinct(
        rng, [x for x in pool if x != correct], DISTRACTOR_COUNT
    )
    options = shuffled(rng, [correct, *distractors])[:SINGLE_OPTION_CAP]

    return RawChoiceItem(
        **_common_fields(item),
        answer_type="single",
        prompt=(
            "Which of the following is specifically listed under the objective:\n"
            f'"{title}"?'
        ),
        explanation=(
            f'"{correct}" is explicitly included under this objective. '
            "Review the objective bullets for related terms."
        ),
        options=options,
        correct_indices=[options.index(correct)],
    )


def build_multi(item: PlanItem, pool: list[str], rng: Generator) -> RawChoiceItem:
    bullets = _usable_bullets(item)
    if len(bullets) < MULTI_CORRECT_COUNT:
        return build_single(item, pool, rng)

    title = sanitize_text(item.objective_title)
    correct = take_distinct(rng, bullets, MULTI_CORRECT_COUNT)
    distractors = take_distinct(
        rng, [x for x in pool if x not in correct], DISTRACTOR_COUNT
    )
    options = shuffled(rng, [*correct, *distractors])[:MULTI_OPTION_CAP]

    return RawChoiceItem(
        **_common_fields(item),
        answer_type="multi",
        prompt=(
            "Select ALL that apply. Which of the following are specifically "
            f'listed under the objective:\n"{title}"?'
        ),
        explanation=(
            "These items are listed under the objective. "
            "The distractors are from other objectives/domains."
        ),
        options=options,
        correct_indices=[i for i, text in enumerate(options) if text in correct],
    )


def build_order(item: PlanItem, template: OrderTemplate, rng: Generator) -> RawOrderItem:
    # display[j] = steps[perm[j]]; correct_order[k] is the display slot of step k
    perm = [int(p) for p in rng.permutation(len(template.steps))]
    slot_of = {step: slot for slot, step in enumerate(perm)}

    return RawOrderItem(
        **_common_fields(item),
        answer_type="pbq-order",
        prompt=template.prompt,
        explanation=ORDER_EXPLANATION,
        order_items=[template.steps[p] for p in perm],
        correct_order=[slot_of[k] for k in range(len(template.steps))],
    )


def build_match(item: PlanItem, template: MatchTemplate, rng: Generator) -> RawMatchItem:
    pairs = shuffled(rng, template.pairs)
    right_perm = [int(p) for p in rng.permutation(len(pairs))]
    slot_of = {pair_index: slot for slot, pair_index in enumerate(right_perm)}

    return RawMatchItem(
        **_common_fields(item),
        answer_type="pbq-match",
        prompt=template.prompt,
        explanation=MATCH_EXPLANATION,
        left_label=template.left_label,
        right_label=template.right_label,
        left=[left for left, _ in pairs],
        right=[pairs[p][1] for p in right_perm],
        correct_pairs=[
            MatchPair(left_index=i, right_index=slot_of[i])
            for i in range(len(pairs))
        ],
    )


class OfflineSynthesizer(ItemSynthesizer):
    """Builds items from the catalogue without any external call."""

    def __init__(self, catalogue: ObjectiveCatalogue) -> None:
        self._catalogue = catalogue

    def build_items(
        self,
        core: CoreId | str,
        session_id: str,
        difficulty: Difficulty,
        plan: Sequence[PlanItem],
    ) -> list[RawItem]:
        """
        Build one raw item per plan item.

        The plan is shuffled once before items are built, so the output
        follows the shuffled order rather than the input order.

        Args:
            core: Exam core.
            session_id: Session identifier, part of the seed.
            difficulty: Difficulty, part of the seed.
            plan: Plan items to fill.

        Returns:
            Raw items in shuffled-plan order.
        """
        core = coerce_core(core)
        rng = get_rng(offline_seed(session_id, core, difficulty))
        items = self._build(core, shuffled(rng, plan), rng)
        logger.debug(f"Built {len(items)} offline items for {session_id}")
        return items[: len(plan)]

    def _build(
        self, core: CoreId, plan: Sequence[PlanItem], rng: Generator
    ) -> list[RawItem]:
        pool = build_distractor_pool(self._catalogue, core)

        items: list[RawItem] = []
        for plan_item in plan:
            answer_type = plan_item.answer_type
            if answer_type.is_pbq:
                templates = templates_for(core, answer_type) or templates_for(core)
                template = pick_one(rng, templates)
                if isinstance(template, OrderTemplate):
                    items.append(build_order(plan_item, template, rng))
                else:
                    items.append(build_match(plan_item, template, rng))
            elif answer_type == AnswerType.MULTI:
                items.append(build_multi(plan_item, pool, rng))
            else:
                items.append(build_single(plan_item, pool, rng))
        return items

    async def synthesize(
        self,
        plan_slice: Sequence[PlanItem],
        difficulty: Difficulty,
        context: BatchContext,
    ) -> list[RawItem]:
        # Batches keep plan order; each batch draws from its own seed.
        core = coerce_core(context.core)
        seed = fnv1a_32(
            f"{context.session_id}:{core}:{difficulty}:{context.batch_index}"
        )
        return self._build(core, plan_slice, get_rng(seed))
