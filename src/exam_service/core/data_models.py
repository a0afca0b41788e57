"""
Data models shared by the planning, generation and scoring layers.

This module defines the typed records that flow through the session
assembly pipeline:
- DomainBlueprint / PlanItem: what to generate
- RawItem: what a synthesizer produced (tagged by answer type)
- CanonicalQuestion: what the scoring engine consumes
- ExamSession / ExamResult: assembled sessions and their scores

Attributes are snake_case; the JSON form uses camelCase aliases and
either form is accepted on input.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from exam_service.core.constants import EXAM_DURATION_SECONDS

# --- Enums ---


class CoreId(StrEnum):
    CORE_1 = "220-1201"
    CORE_2 = "220-1202"


class AnswerType(StrEnum):
    SINGLE = "single"
    MULTI = "multi"
    PBQ_ORDER = "pbq-order"
    PBQ_MATCH = "pbq-match"

    @property
    def is_pbq(self) -> bool:
        return self in (AnswerType.PBQ_ORDER, AnswerType.PBQ_MATCH)


class Difficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# --- Blueprint and plan ---


class DomainBlueprint(FrozenCamelModel):
    """
    Static weighting of one exam domain.

    Attributes:
        domain_number: Domain number, e.g. "2.0".
        domain_label: Human readable label, e.g. "Networking".
        weight: Relative integer weight within the exam core.
    """

    domain_number: str
    domain_label: str
    weight: int = Field(gt=0)

    @property
    def domain_major(self) -> str:
        return self.domain_number.split(".")[0]


class PlanItem(FrozenCamelModel):
    """A request to produce one question, prior to content generation."""

    domain_number: str
    domain_label: str
    objective_id: str = Field(min_length=1)
    objective_title: str = Field(min_length=1)
    objective_bullets: list[str] = Field(default_factory=list)
    answer_type: AnswerType

    @property
    def domain(self) -> str:
        return f"{self.domain_number} {self.domain_label}".strip()


class SessionConfig(FrozenCamelModel):
    pbq_count: int = 5
    show_objective_hints: bool = False
    difficulty: Difficulty = Difficulty.MEDIUM


# --- Raw items (synthesizer output) ---


class RawItemBase(FrozenCamelModel):
    domain: str
    objective_id: str
    objective_title: str
    objective_bullets: list[str] = Field(default_factory=list)
    prompt: str
    explanation: str


class RawChoiceItem(RawItemBase):
    answer_type: Literal["single", "multi"]
    options: list[str]
    correct_indices: list[int]


class RawOrderItem(RawItemBase):
    answer_type: Literal["pbq-order"]
    order_items: list[str]
    correct_order: list[int]


class MatchPair(FrozenCamelModel):
    left_index: int
    right_index: int


class RawMatchItem(RawItemBase):
    answer_type: Literal["pbq-match"]
    left_label: str = "Left"
    right_label: str = "Right"
    left: list[str]
    right: list[str]
    correct_pairs: list[MatchPair]


RawItem = Annotated[
    RawChoiceItem | RawOrderItem | RawMatchItem,
    Field(discriminator="answer_type"),
]

raw_item_adapter: TypeAdapter[RawItem] = TypeAdapter(RawItem)
raw_items_adapter: TypeAdapter[list[RawItem]] = TypeAdapter(list[RawItem])


# --- Canonical questions (scoring input) ---


class Choice(FrozenCamelModel):
    id: str
    text: str


class QuestionBase(FrozenCamelModel):
    id: str
    core: CoreId
    domain: str
    objective_id: str
    objective_title: str
    objective_bullets: list[str] = Field(default_factory=list)
    prompt: str
    explanation: str


class ChoiceQuestion(QuestionBase):
    """Single or multi select. ``correct`` holds option ids."""

    answer_type: Literal["single", "multi"]
    options: list[Choice]
    correct: list[str]


class OrderQuestion(QuestionBase):
    """Ordering PBQ. ``steps`` is display order, ``correct`` the step texts in sequence."""

    answer_type: Literal["pbq-order"]
    steps: list[Choice]
    correct: list[str]


class MatchQuestion(QuestionBase):
    """Matching PBQ. ``correct`` holds "<left>=><right>" encodings."""

    answer_type: Literal["pbq-match"]
    left_label: str
    right_label: str
    left: list[Choice]
    right: list[Choice]
    correct: list[str]


CanonicalQuestion = Annotated[
    ChoiceQuestion | OrderQuestion | MatchQuestion,
    Field(discriminator="answer_type"),
]


# --- Sessions and results ---


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ExamSession(FrozenCamelModel):
    session_id: str
    core: CoreId
    created_at: datetime = Field(default_factory=_utcnow)
    duration_seconds: int = EXAM_DURATION_SECONDS
    config: SessionConfig
    questions: list[CanonicalQuestion]


class DomainScore(FrozenCamelModel):
    domain: str
    correct: int
    total: int


class ObjectiveScore(FrozenCamelModel):
    objective_id: str
    objective_title: str
    domain: str
    correct: int
    total: int


class ScoredQuestion(FrozenCamelModel):
    question_id: str
    is_correct: bool


class ExamResult(FrozenCamelModel):
    percent: float
    correct_count: int
    total: int
    by_domain: list[DomainScore]
    by_objective: list[ObjectiveScore] = Field(default_factory=list)
    scored: list[ScoredQuestion]
