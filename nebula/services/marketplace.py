"""Coin-allocation aggregation for the marketplace module.

Budgets are enforced when a participant submits. Aggregation sums whatever is
stored, including rows written before a budget was lowered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Set

from nebula.services.scoring_utils import ValidationResult, entry_field, percent_complete

DEFAULT_COIN_BUDGET = 100


@dataclass(frozen=True)
class MarketplaceScore:
    note_id: str
    note: Any
    total_coins: int
    average_coins: float
    participant_count: int


@dataclass(frozen=True)
class AllocationProgress:
    total_participants: int
    completed_participants: int
    percent_complete: int
    is_complete: bool


def calculate_marketplace_scores(
    notes: Sequence[Any], allocations: Iterable[Any]
) -> List[MarketplaceScore]:
    totals: Dict[str, int] = {note.id: 0 for note in notes}
    backers: Dict[str, Set[str]] = {note.id: set() for note in notes}

    for allocation in allocations:
        if allocation.note_id not in totals:
            continue
        totals[allocation.note_id] += int(allocation.coins_allocated)
        backers[allocation.note_id].add(allocation.participant_id)

    scores = [
        MarketplaceScore(
            note_id=note.id,
            note=note,
            total_coins=totals[note.id],
            average_coins=(totals[note.id] / len(backers[note.id])) if backers[note.id] else 0.0,
            participant_count=len(backers[note.id]),
        )
        for note in notes
    ]
    scores.sort(key=lambda score: (-score.total_coins, -score.participant_count))
    return scores


def validate_allocation(
    allocations: Sequence[Any], coin_budget: int = DEFAULT_COIN_BUDGET
) -> ValidationResult:
    """``allocations`` items expose ``note_id`` and ``coins``."""
    total = sum(int(entry_field(entry, "coins")) for entry in allocations)
    if total > coin_budget:
        return ValidationResult.fail(
            f"Total allocation ({total}) exceeds budget ({coin_budget})"
        )
    if any(int(entry_field(entry, "coins")) < 0 for entry in allocations):
        return ValidationResult.fail("Coin allocation cannot be negative")
    return ValidationResult.ok()


def calculate_allocation_progress(
    participant_ids: Sequence[str], allocations: Iterable[Any]
) -> AllocationProgress:
    """A participant counts as done once any allocation of theirs is stored."""
    allocating = {allocation.participant_id for allocation in allocations}
    completed = sum(1 for participant_id in participant_ids if participant_id in allocating)
    total = len(participant_ids)
    return AllocationProgress(
        total_participants=total,
        completed_participants=completed,
        percent_complete=percent_complete(completed, total),
        is_complete=total > 0 and completed == total,
    )


def participant_spend(participant_id: str, allocations: Iterable[Any]) -> int:
    return sum(
        int(allocation.coins_allocated)
        for allocation in allocations
        if allocation.participant_id == participant_id
    )


def remaining_budget(
    participant_id: str, allocations: Iterable[Any], coin_budget: int = DEFAULT_COIN_BUDGET
) -> int:
    return max(0, coin_budget - participant_spend(participant_id, allocations))
