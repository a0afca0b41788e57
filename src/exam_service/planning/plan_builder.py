"""
Expands a core's blueprint into an ordered list of plan items.
"""

import logging

from numpy.random import Generator

from exam_service.catalogue.loader import ObjectiveCatalogue, coerce_core
from exam_service.core.constants import (
    EXAM_QUESTION_COUNT,
    MAX_MULTI_COUNT,
    MAX_PBQ_COUNT,
    MULTI_FRACTION,
)
from exam_service.core.data_models import (
    AnswerType,
    CoreId,
    PlanItem,
    SessionConfig,
)
from exam_service.core.utils import get_rng, pick_one
from exam_service.planning.allocation import allocate_by_weight

logger = logging.getLogger(__name__)


def _with_type(item: PlanItem, answer_type: AnswerType) -> PlanItem:
    return item.model_copy(update={"answer_type": answer_type})


def build_plan(
    core: CoreId | str,
    config: SessionConfig,
    catalogue: ObjectiveCatalogue,
    rng: Generator | None = None,
    length: int = EXAM_QUESTION_COUNT,
) -> list[PlanItem]:
    """
    Build the plan for one session.

    Items are grouped by domain in blueprint order. Objectives are drawn
    uniformly with replacement within each domain. A bounded number of
    items is then turned into PBQs and multi-selects; both passes draw
    indices with replacement, so the final counts may fall short of the
    quotas.

    Args:
        core: Exam core.
        config: Session configuration (PBQ quota).
        catalogue: Blueprint and objective source.
        rng: Random generator. None draws from fresh entropy.
        length: Number of plan items.

    Returns:
        Exactly ``length`` plan items.
    """
    core = coerce_core(core)
    if rng is None:
        rng = get_rng()

    blueprint = catalogue.blueprint(core)
    allocation = allocate_by_weight(
        length, [(d.domain_number, d.weight) for d in blueprint]
    )

    plan: list[PlanItem] = []
    for domain in blueprint:
        count = allocation[domain.domain_number]
        objective_ids = catalogue.list_objectives_by_domain(
            core, domain.domain_number
        )
        if not objective_ids:
            logger.warning(
                f"No objectives for domain {domain.domain_number} in {core}"
            )

        for _ in range(count):
            if objective_ids:
                objective_id = pick_one(rng, objective_ids)
            else:
                objective_id = f"{domain.domain_major}.1"
            meta = catalogue.get_objective_meta(core, objective_id)
            plan.append(
                PlanItem(
                    domain_number=domain.domain_number,
                    domain_label=domain.domain_label,
                    objective_id=objective_id,
                    objective_title=(
                        meta.title if meta else f"Objective {objective_id}"
                    ),
                    objective_bullets=list(meta.bullets) if meta else [],
                    answer_type=AnswerType.SINGLE,
                )
            )

    if plan:
        pbq_count = min(max(config.pbq_count, 0), MAX_PBQ_COUNT)
        for _ in range(pbq_count):
            idx = int(rng.integers(len(plan)))
            pbq_type = (
                AnswerType.PBQ_ORDER
                if rng.random() < 0.5
                else AnswerType.PBQ_MATCH
            )
            plan[idx] = _with_type(plan[idx], pbq_type)

        multi_count = min(MAX_MULTI_COUNT, int(len(plan) * MULTI_FRACTION))
        for _ in range(multi_count):
            idx = int(rng.integers(len(plan)))
            if plan[idx].answer_type == AnswerType.SINGLE:
                plan[idx] = _with_type(plan[idx], AnswerType.MULTI)

    return plan[:length]
