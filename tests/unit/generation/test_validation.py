import json
from typing import Any

import pytest

from exam_service.core.data_models import (
    AnswerType,
    PlanItem,
    RawChoiceItem,
    RawMatchItem,
    RawOrderItem,
)
from exam_service.generation.validation import (
    BatchValidationError,
    extract_json_object,
    parse_batch,
    validate_batch,
)


def _plan_item(answer_type: AnswerType, objective_id: str = "2.1") -> PlanItem:
    return PlanItem(
        domain_number="2.0",
        domain_label="Networking",
        objective_id=objective_id,
        objective_title="Ports and protocols",
        objective_bullets=["SSH on port 22"],
        answer_type=answer_type,
    )


def _raw_item(plan_item: PlanItem) -> dict[str, Any]:
    item: dict[str, Any] = {
        "answerType": str(plan_item.answer_type),
        "domain": plan_item.domain,
        "objectiveId": plan_item.objective_id,
        "objectiveTitle": plan_item.objective_title,
        "objectiveBullets": list(plan_item.objective_bullets),
        "prompt": f"Question about {plan_item.objective_id}",
        "explanation": "Because.",
    }
    if plan_item.answer_type == AnswerType.SINGLE:
        item |= {"options": ["a", "b", "c", "d"], "correctIndices": [0]}
    elif plan_item.answer_type == AnswerType.MULTI:
        item |= {"options": ["a", "b", "c", "d", "e"], "correctIndices": [0, 2]}
    elif plan_item.answer_type == AnswerType.PBQ_ORDER:
        item |= {"orderItems": ["s1", "s2", "s3", "s4"], "correctOrder": [0, 1, 2, 3]}
    else:
        item |= {
            "left": ["l1", "l2", "l3"],
            "right": ["r1", "r2", "r3"],
            "correctPairs": [{"leftIndex": i, "rightIndex": i} for i in range(3)],
        }
    return item


PLAN = [_plan_item(t) for t in AnswerType]


class TestValidateBatch:
    def test_valid_batch(self) -> None:
        items = validate_batch({"items": [_raw_item(p) for p in PLAN]}, PLAN)
        assert [type(i) for i in items] == [
            RawChoiceItem,
            RawChoiceItem,
            RawOrderItem,
            RawMatchItem,
        ]

    def test_rejects_non_object(self) -> None:
        with pytest.raises(BatchValidationError, match="object"):
            validate_batch([], PLAN)

    def test_rejects_extra_top_level_key(self) -> None:
        obj = {"items": [_raw_item(p) for p in PLAN], "note": "hi"}
        with pytest.raises(BatchValidationError, match="only 'items'"):
            validate_batch(obj, PLAN)

    def test_rejects_items_not_array(self) -> None:
        with pytest.raises(BatchValidationError, match="array"):
            validate_batch({"items": {}}, PLAN)

    def test_rejects_off_by_one_length(self) -> None:
        plan = [_plan_item(AnswerType.SINGLE, f"2.{i}") for i in range(10)]
        obj = {"items": [_raw_item(p) for p in plan[:9]]}
        with pytest.raises(BatchValidationError, match="length 9"):
            validate_batch(obj, plan)

    def test_rejects_answer_type_mismatch(self) -> None:
        plan = [_plan_item(AnswerType.PBQ_ORDER)]
        obj = {"items": [_raw_item(_plan_item(AnswerType.SINGLE))]}
        with pytest.raises(BatchValidationError, match="does not match"):
            validate_batch(obj, plan)

    def test_rejects_missing_field(self) -> None:
        plan = [_plan_item(AnswerType.SINGLE)]
        raw = _raw_item(plan[0])
        del raw["prompt"]
        with pytest.raises(BatchValidationError, match="Item 0"):
            validate_batch({"items": [raw]}, plan)

    def test_rejects_non_object_entry(self) -> None:
        plan = [_plan_item(AnswerType.SINGLE)]
        with pytest.raises(BatchValidationError, match="Item 0 must be an object"):
            validate_batch({"items": ["oops"]}, plan)

    @pytest.mark.parametrize(
        ("answer_type", "changes"),
        [
            (AnswerType.SINGLE, {"options": ["a", "b", "c"]}),
            (AnswerType.SINGLE, {"options": list("abcdefg")}),
            (AnswerType.MULTI, {"correctIndices": [0, 1, 2, 3]}),
            (AnswerType.SINGLE, {"correctIndices": []}),
            (AnswerType.PBQ_ORDER, {"orderItems": ["a", "b", "c"], "correctOrder": [0, 1, 2]}),
            (AnswerType.PBQ_ORDER, {"correctOrder": [0, 1, 2]}),
            (AnswerType.PBQ_MATCH, {"left": ["a", "b"]}),
            (AnswerType.PBQ_MATCH, {"correctPairs": []}),
        ],
    )
    def test_rejects_cardinality_violations(
        self, answer_type: AnswerType, changes: dict[str, Any]
    ) -> None:
        plan = [_plan_item(answer_type)]
        raw = _raw_item(plan[0]) | changes
        with pytest.raises(BatchValidationError):
            validate_batch({"items": [raw]}, plan)


class TestExtractJson:
    def test_surrounding_prose_is_ignored(self) -> None:
        plan = [_plan_item(AnswerType.SINGLE)]
        text = "Here you go:\n" + json.dumps({"items": [_raw_item(plan[0])]}) + "\nDone."
        items = parse_batch(text, plan)
        assert items[0].objective_id == "2.1"

    def test_no_object(self) -> None:
        with pytest.raises(BatchValidationError, match="JSON object"):
            extract_json_object("no json here")

    def test_malformed_json(self) -> None:
        with pytest.raises(BatchValidationError, match="Invalid JSON"):
            extract_json_object("{items: [}")
