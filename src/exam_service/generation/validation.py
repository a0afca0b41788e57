"""
Strict validation of generative backend output.

A valid response is a JSON object whose only key is ``items``, holding
exactly one item per requested plan item. Each item must parse as a
RawItem of the requested answer type and respect the cardinality limits
below. Any violation raises BatchValidationError; its message is fed back
to the backend on retry.
"""

import json
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from exam_service.core.data_models import (
    PlanItem,
    RawChoiceItem,
    RawItem,
    RawMatchItem,
    RawOrderItem,
    raw_item_adapter,
)

OPTIONS_RANGE = (4, 6)
CORRECT_INDICES_RANGE = (1, 3)
ORDER_ITEMS_RANGE = (4, 8)
MATCH_SIDE_RANGE = (3, 8)


class BatchValidationError(ValueError):
    pass


def extract_json_object(text: str) -> Any:
    """Parse the outermost ``{...}`` span of ``text``."""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        raise BatchValidationError("Model did not return a JSON object.")
    try:
        return json.loads(text[first : last + 1])
    except json.JSONDecodeError as exc:
        raise BatchValidationError(f"Invalid JSON: {exc}") from exc


def _check_range(name: str, size: int, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if not low <= size <= high:
        raise BatchValidationError(f"{name} must have {low}..{high} entries, got {size}.")


def _check_cardinality(item: RawItem) -> None:
    if isinstance(item, RawChoiceItem):
        _check_range("options", len(item.options), OPTIONS_RANGE)
        _check_range(
            "correctIndices", len(item.correct_indices), CORRECT_INDICES_RANGE
        )
    elif isinstance(item, RawOrderItem):
        _check_range("orderItems", len(item.order_items), ORDER_ITEMS_RANGE)
        if len(item.correct_order) != len(item.order_items):
            raise BatchValidationError(
                "correctOrder length must match orderItems length."
            )
    elif isinstance(item, RawMatchItem):
        _check_range("left", len(item.left), MATCH_SIDE_RANGE)
        _check_range("right", len(item.right), MATCH_SIDE_RANGE)
        if not item.correct_pairs:
            raise BatchValidationError("correctPairs must be a non-empty array.")


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    loc = ".".join(str(p) for p in err["loc"])
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def validate_batch(obj: Any, plan_slice: Sequence[PlanItem]) -> list[RawItem]:
    """
    Validate a decoded backend response against the requested batch.

    Args:
        obj: Decoded JSON value.
        plan_slice: The plan items that were requested, in order.

    Returns:
        Parsed raw items, in request order.

    Raises:
        BatchValidationError: On the first contract violation found.
    """
    if not isinstance(obj, dict):
        raise BatchValidationError("Top-level JSON must be an object.")
    if list(obj.keys()) != ["items"]:
        raise BatchValidationError("Top-level must contain only 'items'.")
    entries = obj["items"]
    if not isinstance(entries, list):
        raise BatchValidationError("'items' must be an array.")
    if len(entries) != len(plan_slice):
        raise BatchValidationError(
            f"'items' length {len(entries)} != expected {len(plan_slice)}."
        )

    parsed: list[RawItem] = []
    for i, (entry, plan_item) in enumerate(zip(entries, plan_slice, strict=True)):
        if not isinstance(entry, dict):
            raise BatchValidationError(f"Item {i} must be an object.")
        try:
            item = raw_item_adapter.validate_python(entry)
        except ValidationError as exc:
            raise BatchValidationError(f"Item {i}: {_first_error(exc)}") from exc
        if item.answer_type != plan_item.answer_type:
            raise BatchValidationError(
                f"Item {i}: answerType '{item.answer_type}' does not match "
                f"requested '{plan_item.answer_type}'."
            )
        try:
            _check_cardinality(item)
        except BatchValidationError as exc:
            raise BatchValidationError(f"Item {i}: {exc}") from exc
        parsed.append(item)
    return parsed


def parse_batch(text: str, plan_slice: Sequence[PlanItem]) -> list[RawItem]:
    return validate_batch(extract_json_object(text), plan_slice)
