"""Borda-count aggregation and submission checks for stack ranking.

Rankings are recomputed from raw rows on every call. Stored ranks that fall
outside ``1..N`` (left over from a session with a different idea count) are
clamped when scored, never rejected.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence

from nebula.services.scoring_utils import ValidationResult, entry_field, percent_complete


@dataclass(frozen=True)
class BordaScore:
    note_id: str
    note: Any
    total_score: int
    average_rank: float
    participant_count: int


@dataclass(frozen=True)
class RankingProgress:
    total_participants: int
    completed_participants: int
    percent_complete: int
    is_complete: bool


def calculate_borda_scores(notes: Sequence[Any], rankings: Iterable[Any]) -> List[BordaScore]:
    """Score every note; highest total first, lower average rank wins a tie.

    ``notes`` need an ``id``; ranking rows need ``note_id`` and ``rank``.
    Rows for notes outside ``notes`` are ignored.
    """
    total_notes = len(notes)
    points: Dict[str, int] = {note.id: 0 for note in notes}
    rank_sums: Dict[str, int] = {note.id: 0 for note in notes}
    counts: Dict[str, int] = {note.id: 0 for note in notes}

    for row in rankings:
        if row.note_id not in points:
            continue
        raw_rank = int(row.rank)
        clamped = min(max(raw_rank, 1), total_notes)
        points[row.note_id] += total_notes - clamped + 1
        rank_sums[row.note_id] += raw_rank
        counts[row.note_id] += 1

    scores = [
        BordaScore(
            note_id=note.id,
            note=note,
            total_score=points[note.id],
            average_rank=(rank_sums[note.id] / counts[note.id]) if counts[note.id] else 0.0,
            participant_count=counts[note.id],
        )
        for note in notes
    ]
    scores.sort(key=lambda score: (-score.total_score, score.average_rank))
    return scores


def validate_ranking(note_ids: Sequence[str], rankings: Sequence[Any]) -> ValidationResult:
    """Accept a submission only when it is a full permutation of ``1..N`` over ``note_ids``.

    ``rankings`` items expose ``note_id`` and ``rank`` (attributes or mapping keys).
    """
    expected = len(note_ids)
    if len(rankings) != expected:
        return ValidationResult.fail(
            f"Must rank all {expected} notes (received {len(rankings)})"
        )

    known = set(note_ids)
    submitted_ids = [entry_field(entry, "note_id") for entry in rankings]
    for note_id in submitted_ids:
        if note_id not in known:
            return ValidationResult.fail(f"Invalid note ID: {note_id}")

    duplicates = [note_id for note_id, seen in Counter(submitted_ids).items() if seen > 1]
    if duplicates:
        return ValidationResult.fail(f"Note ranked more than once: {duplicates[0]}")

    ranks = sorted(int(entry_field(entry, "rank")) for entry in rankings)
    if ranks != list(range(1, expected + 1)):
        return ValidationResult.fail(f"Ranks must be sequential from 1 to {expected}")

    return ValidationResult.ok()


def has_participant_completed(
    participant_id: str, rankings: Iterable[Any], total_notes: int
) -> bool:
    submitted = sum(1 for row in rankings if row.participant_id == participant_id)
    return submitted == total_notes


def calculate_ranking_progress(
    participant_ids: Sequence[str], rankings: Iterable[Any], total_notes: int
) -> RankingProgress:
    rows_per_participant: Counter = Counter(row.participant_id for row in rankings)
    completed = sum(
        1 for participant_id in participant_ids
        if rows_per_participant.get(participant_id, 0) == total_notes
    )
    total = len(participant_ids)
    return RankingProgress(
        total_participants=total,
        completed_participants=completed,
        percent_complete=percent_complete(completed, total),
        is_complete=total > 0 and completed == total,
    )
