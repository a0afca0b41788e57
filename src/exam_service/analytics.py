"""
Attempt history and cross-attempt accuracy.
"""

from collections.abc import Iterable
from datetime import UTC, datetime

from pydantic import Field

from exam_service.core.data_models import (
    CoreId,
    Difficulty,
    DomainScore,
    ExamResult,
    ExamSession,
    FrozenCamelModel,
    ObjectiveScore,
)
from exam_service.scoring import percent_correct

WEAK_OBJECTIVE_THRESHOLD = 70.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AttemptRecord(FrozenCamelModel):
    session_id: str
    core: CoreId
    difficulty: Difficulty
    created_at: datetime
    submitted_at: datetime = Field(default_factory=_utcnow)
    auto_submitted: bool = False
    percent: float
    correct_count: int
    total: int
    by_domain: list[DomainScore]
    by_objective: list[ObjectiveScore] = Field(default_factory=list)


class DomainAccuracy(FrozenCamelModel):
    domain: str
    correct: int
    total: int
    percent: float


class ObjectiveAccuracy(FrozenCamelModel):
    objective_id: str
    objective_title: str
    domain: str
    correct: int
    total: int
    percent: float


class AnalyticsSummary(FrozenCamelModel):
    attempts: int
    average_percent: float
    best_percent: float
    by_domain: list[DomainAccuracy]
    by_objective: list[ObjectiveAccuracy]
    weak_objectives: list[ObjectiveAccuracy]


def build_attempt(
    session: ExamSession,
    result: ExamResult,
    submitted_at: datetime | None = None,
    auto_submitted: bool = False,
) -> AttemptRecord:
    return AttemptRecord(
        session_id=session.session_id,
        core=session.core,
        difficulty=session.config.difficulty,
        created_at=session.created_at,
        submitted_at=submitted_at or _utcnow(),
        auto_submitted=auto_submitted,
        percent=result.percent,
        correct_count=result.correct_count,
        total=result.total,
        by_domain=list(result.by_domain),
        by_objective=list(result.by_objective),
    )


def aggregate_attempts(
    attempts: Iterable[AttemptRecord],
    core: CoreId | None = None,
    weak_threshold: float = WEAK_OBJECTIVE_THRESHOLD,
) -> AnalyticsSummary:
    """
    Sum per-domain and per-objective tallies across attempts.

    Args:
        attempts: Recorded attempts, any order.
        core: Restrict to one core. None keeps every attempt.
        weak_threshold: Objectives below this percent are reported as weak.

    Returns:
        Summary with domains and objectives in order of first appearance
        and weak objectives sorted from lowest percent.
    """
    selected = [a for a in attempts if core is None or a.core == core]

    domains: dict[str, list[int]] = {}
    objectives: dict[tuple[str, str], list[int]] = {}
    titles: dict[tuple[str, str], str] = {}
    for attempt in selected:
        for d in attempt.by_domain:
            tally = domains.setdefault(d.domain, [0, 0])
            tally[0] += d.correct
            tally[1] += d.total
        for o in attempt.by_objective:
            key = (o.domain, o.objective_id)
            titles.setdefault(key, o.objective_title)
            tally = objectives.setdefault(key, [0, 0])
            tally[0] += o.correct
            tally[1] += o.total

    by_objective = [
        ObjectiveAccuracy(
            objective_id=objective_id,
            objective_title=titles[(domain, objective_id)],
            domain=domain,
            correct=c,
            total=t,
            percent=percent_correct(c, t),
        )
        for (domain, objective_id), (c, t) in objectives.items()
    ]
    percents = [a.percent for a in selected]

    return AnalyticsSummary(
        attempts=len(selected),
        average_percent=(
            round(sum(percents) / len(percents), 1) if percents else 0.0
        ),
        best_percent=max(percents, default=0.0),
        by_domain=[
            DomainAccuracy(
                domain=domain, correct=c, total=t, percent=percent_correct(c, t)
            )
            for domain, (c, t) in domains.items()
        ],
        by_objective=by_objective,
        weak_objectives=sorted(
            (o for o in by_objective if o.total > 0 and o.percent < weak_threshold),
            key=lambda o: o.percent,
        ),
    )
