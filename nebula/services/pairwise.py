"""Round-robin pair selection and progress for pairwise voting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from nebula.services.scoring_utils import percent_complete

SCOPE_ALL = "all"
SCOPE_WITHIN_CATEGORIES = "within_categories"
PAIRWISE_SCOPES = (SCOPE_ALL, SCOPE_WITHIN_CATEGORIES)


@dataclass(frozen=True)
class NotePair:
    note_a: Any
    note_b: Any


@dataclass(frozen=True)
class PairwiseProgress:
    total_pairs: int
    completed_pairs: int
    percent_complete: int
    is_complete: bool


@dataclass(frozen=True)
class PairwiseStat:
    note_id: str
    note: Any
    wins: int
    losses: int

    @property
    def comparisons(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return self.wins / self.comparisons if self.comparisons else 0.0


def _pair_key(first_id: str, second_id: str) -> FrozenSet[str]:
    return frozenset((first_id, second_id))


def settled_pairs(votes: Iterable[Any]) -> Set[FrozenSet[str]]:
    """Unordered pairs that already carry a vote, whichever side won."""
    return {_pair_key(vote.winner_note_id, vote.loser_note_id) for vote in votes}


def eligible_pairs(notes: Sequence[Any], scope: str = SCOPE_ALL) -> Iterator[Tuple[Any, Any]]:
    """Yield every unordered pair in note order (i < j), honouring the scope."""
    within_categories = scope == SCOPE_WITHIN_CATEGORIES
    for i in range(len(notes)):
        for j in range(i + 1, len(notes)):
            if within_categories and notes[i].category_id != notes[j].category_id:
                continue
            yield notes[i], notes[j]


def get_next_pair(
    notes: Sequence[Any], votes: Iterable[Any], scope: str = SCOPE_ALL
) -> Optional[NotePair]:
    """First pair in scan order the participant has not voted on, or None when done.

    ``votes`` must already be limited to the one participant being served.
    """
    if len(notes) < 2:
        return None
    settled = settled_pairs(votes)
    for first, second in eligible_pairs(notes, scope):
        if _pair_key(first.id, second.id) not in settled:
            return NotePair(note_a=first, note_b=second)
    return None


def calculate_progress(
    notes: Sequence[Any], votes: Iterable[Any], scope: str = SCOPE_ALL
) -> PairwiseProgress:
    """Settled eligible pairs over total eligible pairs for one participant.

    Repeat votes on the same pair count once, so progress never passes 100%.
    """
    settled = settled_pairs(votes)
    total = 0
    completed = 0
    for first, second in eligible_pairs(notes, scope):
        total += 1
        if _pair_key(first.id, second.id) in settled:
            completed += 1
    return PairwiseProgress(
        total_pairs=total,
        completed_pairs=completed,
        percent_complete=percent_complete(completed, total),
        is_complete=total > 0 and completed >= total,
    )


def calculate_vote_stats(notes: Sequence[Any], votes: Iterable[Any]) -> List[PairwiseStat]:
    """Win/loss tallies across every recorded vote, most wins first."""
    wins = {note.id: 0 for note in notes}
    losses = {note.id: 0 for note in notes}
    for vote in votes:
        if vote.winner_note_id in wins:
            wins[vote.winner_note_id] += 1
        if vote.loser_note_id in losses:
            losses[vote.loser_note_id] += 1
    stats = [
        PairwiseStat(note_id=note.id, note=note, wins=wins[note.id], losses=losses[note.id])
        for note in notes
    ]
    stats.sort(key=lambda stat: -stat.wins)
    return stats
