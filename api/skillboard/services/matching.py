from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class MatchResult:
    job_id: int
    matching_skill_count: int
    total_required_skill_count: int
    match_percentage: float


def score_match(candidate_skill_ids: Iterable[int], job_skill_ids: Iterable[int], *, job_id: int) -> MatchResult:
    """Score one job's required skills against a candidate's skill set.

    Only the job's required skills take part; every one of them weighs the same.
    A job without required skills scores 0, never 100.
    """
    candidate = set(candidate_skill_ids)
    required = set(job_skill_ids)
    total = len(required)
    matching = len(candidate & required)
    percentage = 0.0 if total == 0 else 100.0 * matching / total
    return MatchResult(
        job_id=job_id,
        matching_skill_count=matching,
        total_required_skill_count=total,
        match_percentage=percentage,
    )


def rank_by_match(
    rows: Sequence[dict[str, Any]],
    candidate_skill_ids: Iterable[int],
) -> list[tuple[dict[str, Any], MatchResult]]:
    """Score listing rows and order them best match first, newest first on ties.

    Each row needs ``id``, ``posted_at`` and ``required_skill_ids``.
    """
    candidate = set(candidate_skill_ids)
    scored = [
        (row, score_match(candidate, row.get("required_skill_ids") or (), job_id=row["id"]))
        for row in rows
    ]
    scored.sort(key=lambda item: (item[0].get("posted_at") or _EPOCH, item[0]["id"]), reverse=True)
    # Stable sort keeps the recency order inside each percentage bucket.
    scored.sort(key=lambda item: item[1].match_percentage, reverse=True)
    return scored
