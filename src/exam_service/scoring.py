"""
Scoring of canonical questions.

Answers are sequences of strings: option ids for choice questions, step
texts in submitted order for ordering PBQs, and ``"<left>=><right>"``
encodings for matching PBQs.
"""

import math
from collections import Counter
from collections.abc import Mapping, Sequence

from exam_service.core.data_models import (
    CanonicalQuestion,
    DomainScore,
    ExamResult,
    ExamSession,
    ObjectiveScore,
    OrderQuestion,
    ScoredQuestion,
)

Answers = Mapping[str, Sequence[str]]


def score_question(
    question: CanonicalQuestion, answer: Sequence[str] | None
) -> bool:
    """
    Check one answer.

    Ordering PBQs need the exact sequence. Choice and matching questions
    compare as multisets, so order is ignored but every entry must appear
    as often as in the key. A missing answer is incorrect.
    """
    if answer is None:
        return False
    if isinstance(question, OrderQuestion):
        return list(answer) == list(question.correct)
    return Counter(answer) == Counter(question.correct)


def percent_correct(correct: int, total: int) -> float:
    """Percentage rounded half-up to one decimal; 0.0 when total is 0."""
    if total <= 0:
        return 0.0
    return math.floor(correct * 1000 / total + 0.5) / 10


def score_exam(session: ExamSession, answers: Answers) -> ExamResult:
    """
    Score every question of a session.

    Args:
        session: Assembled session.
        answers: Question id -> submitted answer. Absent ids are incorrect.

    Returns:
        Overall percent plus per-domain and per-objective tallies, each in
        order of first appearance.
    """
    scored: list[ScoredQuestion] = []
    by_domain: dict[str, list[int]] = {}
    by_objective: dict[tuple[str, str], list[int]] = {}
    titles: dict[tuple[str, str], str] = {}

    for question in session.questions:
        is_correct = score_question(question, answers.get(question.id))
        scored.append(ScoredQuestion(question_id=question.id, is_correct=is_correct))

        domain_tally = by_domain.setdefault(question.domain, [0, 0])
        domain_tally[0] += int(is_correct)
        domain_tally[1] += 1

        key = (question.domain, question.objective_id)
        titles.setdefault(key, question.objective_title)
        objective_tally = by_objective.setdefault(key, [0, 0])
        objective_tally[0] += int(is_correct)
        objective_tally[1] += 1

    correct_count = sum(1 for s in scored if s.is_correct)
    total = len(scored)

    return ExamResult(
        percent=percent_correct(correct_count, total),
        correct_count=correct_count,
        total=total,
        by_domain=[
            DomainScore(domain=domain, correct=c, total=t)
            for domain, (c, t) in by_domain.items()
        ],
        by_objective=[
            ObjectiveScore(
                objective_id=objective_id,
                objective_title=titles[(domain, objective_id)],
                domain=domain,
                correct=c,
                total=t,
            )
            for (domain, objective_id), (c, t) in by_objective.items()
        ],
        scored=scored,
    )
