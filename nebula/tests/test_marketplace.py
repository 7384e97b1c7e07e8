from types import SimpleNamespace

from nebula.services.marketplace import (
    calculate_allocation_progress,
    calculate_marketplace_scores,
    remaining_budget,
    validate_allocation,
)


def _note(note_id: str):
    return SimpleNamespace(id=note_id, content=f"Idea {note_id}")


def _allocation(participant_id: str, note_id: str, coins: int):
    return SimpleNamespace(participant_id=participant_id, note_id=note_id, coins_allocated=coins)


def test_validate_allocation_within_budget():
    result = validate_allocation([{"note_id": "A", "coins": 60}, {"note_id": "B", "coins": 40}], 100)
    assert result.valid


def test_validate_allocation_over_budget():
    result = validate_allocation([{"note_id": "A", "coins": 80}, {"note_id": "B", "coins": 30}], 100)
    assert not result.valid
    assert result.error == "Total allocation (110) exceeds budget (100)"


def test_validate_allocation_negative_coins():
    result = validate_allocation([{"note_id": "A", "coins": 50}, {"note_id": "B", "coins": -5}], 100)
    assert not result.valid
    assert result.error == "Coin allocation cannot be negative"


def test_scores_sort_by_coins_then_backers():
    notes = [_note("A"), _note("B"), _note("C")]
    allocations = [
        _allocation("p1", "A", 50),
        _allocation("p1", "B", 25),
        _allocation("p2", "B", 25),
        _allocation("p2", "C", 10),
    ]

    scores = calculate_marketplace_scores(notes, allocations)

    assert [score.note_id for score in scores] == ["B", "A", "C"]
    assert scores[0].total_coins == 50
    assert scores[0].participant_count == 2
    assert scores[0].average_coins == 25.0
    assert scores[2].average_coins == 10.0


def test_stored_rows_over_a_lowered_budget_still_aggregate():
    notes = [_note("A")]
    scores = calculate_marketplace_scores(notes, [_allocation("p1", "A", 150)])
    assert scores[0].total_coins == 150


def test_allocation_progress_and_remaining_budget():
    allocations = [_allocation("p1", "A", 30), _allocation("p1", "B", 20)]

    progress = calculate_allocation_progress(["p1", "p2"], allocations)

    assert progress.completed_participants == 1
    assert progress.percent_complete == 50
    assert remaining_budget("p1", allocations, 100) == 50
    assert remaining_budget("p2", allocations, 100) == 100
