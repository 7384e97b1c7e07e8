"""Equal-weight combination of per-module idea scores.

Each module contributes a :class:`ModuleSignal`: its raw value per idea plus
the denominator that maps those values onto ``[0, 1]``. A module only takes
part when it is enabled and has at least one recorded data point; the builder
functions below return ``None`` for modules without data.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from nebula.services import module_catalog
from nebula.services.stack_ranking import calculate_borda_scores

SURVEY_SCALE_MAX = 5


@dataclass(frozen=True)
class ModuleSignal:
    kind: str
    raw_values: Mapping[str, float]
    max_value: float

    def raw_value(self, note_id: str) -> float:
        return float(self.raw_values.get(note_id, 0.0))

    def normalized(self, note_id: str) -> float:
        if self.max_value <= 0:
            return 0.0
        return min(1.0, max(0.0, self.raw_value(note_id) / self.max_value))


@dataclass(frozen=True)
class CombinedScore:
    note_id: str
    note: Any
    score: float
    contributions: Dict[str, float] = field(default_factory=dict)


def _observed_max(values: Mapping[str, float]) -> float:
    return max(values.values(), default=0.0)


def _mean_by_note(pairs: Iterable[tuple]) -> Dict[str, float]:
    sums: Dict[str, float] = defaultdict(float)
    counts: Dict[str, int] = defaultdict(int)
    for note_id, value in pairs:
        sums[note_id] += float(value)
        counts[note_id] += 1
    return {note_id: sums[note_id] / counts[note_id] for note_id in sums}


def pairwise_signal(notes: Sequence[Any], votes: Sequence[Any]) -> Optional[ModuleSignal]:
    if not votes:
        return None
    note_ids = {note.id for note in notes}
    wins: Dict[str, float] = {note_id: 0.0 for note_id in note_ids}
    for vote in votes:
        if vote.winner_note_id in wins:
            wins[vote.winner_note_id] += 1
    return ModuleSignal(module_catalog.PAIRWISE_VOTING, wins, _observed_max(wins))


def ranking_signal(notes: Sequence[Any], rankings: Sequence[Any]) -> Optional[ModuleSignal]:
    if not rankings:
        return None
    totals = {
        score.note_id: float(score.total_score)
        for score in calculate_borda_scores(notes, rankings)
    }
    return ModuleSignal(module_catalog.STACK_RANKING, totals, _observed_max(totals))


def marketplace_signal(
    notes: Sequence[Any], allocations: Sequence[Any]
) -> Optional[ModuleSignal]:
    if not allocations:
        return None
    coins: Dict[str, float] = {note.id: 0.0 for note in notes}
    for allocation in allocations:
        if allocation.note_id in coins:
            coins[allocation.note_id] += int(allocation.coins_allocated)
    return ModuleSignal(module_catalog.MARKETPLACE, coins, _observed_max(coins))


def matrix_signal(positions: Sequence[Any]) -> Optional[ModuleSignal]:
    """x-coordinate only; the y axis is left out of the combined score."""
    if not positions:
        return None
    x_values = _mean_by_note((position.note_id, position.x_coord) for position in positions)
    return ModuleSignal(module_catalog.PRIORITY_MATRIX, x_values, _observed_max(x_values))


def staircase_signal(positions: Sequence[Any], max_score: float) -> Optional[ModuleSignal]:
    if not positions:
        return None
    scores = _mean_by_note((position.note_id, position.score) for position in positions)
    return ModuleSignal(module_catalog.STAIRCASE, scores, float(max_score))


def survey_signal(responses: Sequence[Any]) -> Optional[ModuleSignal]:
    if not responses:
        return None
    means = _mean_by_note((response.note_id, response.score) for response in responses)
    return ModuleSignal(module_catalog.SURVEY, means, float(SURVEY_SCALE_MAX))


def combine_scores(
    notes: Sequence[Any], signals: Sequence[Optional[ModuleSignal]]
) -> List[CombinedScore]:
    """Average the normalized module values per idea and order the ideas.

    Ties (including the all-zero case with no active module) fall back to idea
    content, then idea id, so the order is total and repeatable.
    """
    active = [signal for signal in signals if signal is not None]
    weight = 1.0 / len(active) if active else 0.0

    combined: List[CombinedScore] = []
    for note in notes:
        contributions = {signal.kind: signal.normalized(note.id) * weight for signal in active}
        combined.append(
            CombinedScore(
                note_id=note.id,
                note=note,
                score=sum(contributions.values()),
                contributions=contributions,
            )
        )
    combined.sort(key=lambda item: (-item.score, item.note.content or "", item.note_id))
    return combined
