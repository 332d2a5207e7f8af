# capalloc/scoring.py
"""
Weighted alignment scoring of projects against strategic priorities.

Every priority gets a base alignment of 75 (project claims it) or 25 (it
does not), plus two financial bonuses that apply identically to every
priority:
  - IRR bonus: IRR/25 * 15, capped at +15
  - NPV bonus: NPV/10M * 10, capped at +10
The sum is capped at 100. Bonuses are not floored, so a negative IRR or NPV
lowers the score.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Sequence

from .types import Priority, PriorityScore, Project, ProjectScore

ALIGNED_BASE = 75.0
UNALIGNED_BASE = 25.0
IRR_BONUS_MAX = 15.0
IRR_BONUS_AT = 25.0  # percent
NPV_BONUS_MAX = 10.0
NPV_BONUS_AT = 10_000_000.0


def _alignment_score(project: Project, priority: Priority) -> float:
    base = ALIGNED_BASE if priority.id in project.priority_alignment else UNALIGNED_BASE
    irr_bonus = min(project.irr / IRR_BONUS_AT * IRR_BONUS_MAX, IRR_BONUS_MAX)
    npv_bonus = min(project.npv / NPV_BONUS_AT * NPV_BONUS_MAX, NPV_BONUS_MAX)
    return min(base + irr_bonus + npv_bonus, 100.0)


def score_project(project: Project, priorities: Sequence[Priority]) -> ProjectScore:
    """Score one project. `rank` stays 0; ranking is a batch concern (see rank_scores)."""
    scores = []
    for pr in priorities:
        alignment = _alignment_score(project, pr)
        scores.append(
            PriorityScore(
                priority_id=pr.id,
                alignment_score=alignment,
                weighted_score=alignment * pr.weight / 100.0,
            )
        )

    passes = all(s.alignment_score >= pr.min_threshold for s, pr in zip(scores, priorities))

    return ProjectScore(
        project_id=project.id,
        scores=tuple(scores),
        total_score=sum(s.weighted_score for s in scores),
        passes_threshold=passes,
    )


def rank_scores(scores: Iterable[ProjectScore]) -> List[ProjectScore]:
    """New list sorted by total_score descending (ties keep input order), ranks from 1."""
    ordered = sorted(scores, key=lambda s: s.total_score, reverse=True)
    return [replace(s, rank=i) for i, s in enumerate(ordered, start=1)]


def score_projects(projects: Iterable[Project], priorities: Sequence[Priority]) -> List[ProjectScore]:
    return rank_scores(score_project(p, priorities) for p in projects)


__all__ = ["score_project", "score_projects", "rank_scores"]
