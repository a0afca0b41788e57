"""
Conversion of raw synthesizer items into canonical questions.

The normalizer is lenient: it accepts RawItem models or plain mappings
(as loaded from persisted JSON, in camelCase or snake_case), drops
malformed indices, and fills in missing text. Only an unknown answer
type causes an item to be skipped.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from numpy.random import Generator
from pydantic import BaseModel

from exam_service.core.constants import DEFAULT_EXPLANATION
from exam_service.core.data_models import (
    CanonicalQuestion,
    Choice,
    ChoiceQuestion,
    CoreId,
    MatchQuestion,
    OrderQuestion,
)
from exam_service.core.utils import get_rng, index_to_letter, shuffled

logger = logging.getLogger(__name__)


def make_question_id(session_id: str, seq: int) -> str:
    return f"{session_id}-q-{seq:03d}"


def match_key(left: str, right: str) -> str:
    return f"{left}=>{right}"


def option_id(index: int) -> str:
    return index_to_letter(index) if index < 26 else f"O{index + 1}"


def _field(data: Mapping[str, Any], camel: str, snake: str) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake)


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list | tuple) else []


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value)
    return text if text else default


def _valid_indices(values: Any, size: int) -> list[int]:
    """Keep integer indices within [0, size); order kept, repeats dropped."""
    indices: list[int] = []
    for v in _as_list(values):
        if isinstance(v, bool) or not isinstance(v, int):
            continue
        if 0 <= v < size and v not in indices:
            indices.append(v)
    return indices


def _choices(texts: Sequence[str], make_id: Callable[[int], str]) -> list[Choice]:
    return [Choice(id=make_id(i), text=t) for i, t in enumerate(texts)]


def normalize_item(
    raw: BaseModel | Mapping[str, Any],
    core: CoreId,
    question_id: str,
    rng: Generator,
) -> CanonicalQuestion | None:
    """
    Build the canonical question for one raw item.

    Args:
        raw: RawItem model or equivalent mapping.
        core: Exam core the session belongs to.
        question_id: Id to assign to the question.
        rng: Source of the display permutation for ordering PBQs.

    Returns:
        The canonical question, or None if the answer type is unknown.
    """
    data = raw.model_dump(by_alias=True) if isinstance(raw, BaseModel) else raw

    objective_id = _as_text(_field(data, "objectiveId", "objective_id"))
    common: dict[str, Any] = {
        "id": question_id,
        "core": core,
        "domain": _as_text(data.get("domain"), f"{objective_id.split('.')[0]}.0"),
        "objective_id": objective_id,
        "objective_title": _as_text(
            _field(data, "objectiveTitle", "objective_title"),
            f"Objective {objective_id}",
        ),
        "objective_bullets": [
            str(b) for b in _as_list(_field(data, "objectiveBullets", "objective_bullets"))
        ],
        "prompt": _as_text(data.get("prompt")),
        "explanation": _as_text(data.get("explanation"), DEFAULT_EXPLANATION),
    }
    answer_type = _field(data, "answerType", "answer_type")

    if answer_type in ("single", "multi"):
        options = _choices([str(t) for t in _as_list(data.get("options"))], option_id)
        indices = _valid_indices(
            _field(data, "correctIndices", "correct_indices"), len(options)
        )
        return ChoiceQuestion(
            **common,
            answer_type=answer_type,
            options=options,
            correct=[options[i].id for i in indices],
        )

    if answer_type == "pbq-order":
        steps = _choices(
            [str(t) for t in _as_list(_field(data, "orderItems", "order_items"))],
            lambda i: f"S{i + 1}",
        )
        order = _valid_indices(
            _field(data, "correctOrder", "correct_order"), len(steps)
        )
        return OrderQuestion(
            **common,
            answer_type=answer_type,
            steps=shuffled(rng, steps),
            correct=[steps[i].text for i in order],
        )

    if answer_type == "pbq-match":
        left = _choices([str(t) for t in _as_list(data.get("left"))], lambda i: f"L{i + 1}")
        right = _choices([str(t) for t in _as_list(data.get("right"))], lambda i: f"R{i + 1}")
        correct = []
        for pair in _as_list(_field(data, "correctPairs", "correct_pairs")):
            if isinstance(pair, BaseModel):
                pair = pair.model_dump(by_alias=True)
            if not isinstance(pair, Mapping):
                continue
            li = _valid_indices([_field(pair, "leftIndex", "left_index")], len(left))
            ri = _valid_indices([_field(pair, "rightIndex", "right_index")], len(right))
            if li and ri:
                correct.append(match_key(left[li[0]].text, right[ri[0]].text))
        return MatchQuestion(
            **common,
            answer_type=answer_type,
            left_label=_as_text(_field(data, "leftLabel", "left_label"), "Left"),
            right_label=_as_text(_field(data, "rightLabel", "right_label"), "Right"),
            left=left,
            right=right,
            correct=correct,
        )

    logger.warning(f"Skipping item {question_id} with unknown answer type {answer_type!r}")
    return None


def normalize_items(
    core: CoreId,
    session_id: str,
    items: Iterable[BaseModel | Mapping[str, Any]],
    rng: Generator | None = None,
) -> list[CanonicalQuestion]:
    """
    Normalize a session's raw items in order.

    Question ids follow input position, so a skipped item leaves a gap in
    the sequence.

    Args:
        core: Exam core.
        session_id: Session identifier used in question ids.
        items: Raw items or mappings.
        rng: Source of display permutations. None draws from fresh entropy.

    Returns:
        Canonical questions for every item with a known answer type.
    """
    if rng is None:
        rng = get_rng()

    questions: list[CanonicalQuestion] = []
    for seq, raw in enumerate(items, start=1):
        question = normalize_item(raw, core, make_question_id(session_id, seq), rng)
        if question is not None:
            questions.append(question)
    return questions
