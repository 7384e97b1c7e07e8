from types import SimpleNamespace

from nebula.services.stack_ranking import (
    calculate_borda_scores,
    calculate_ranking_progress,
    has_participant_completed,
    validate_ranking,
)


def _note(note_id: str):
    return SimpleNamespace(id=note_id, content=f"Idea {note_id}")


def _rank(participant_id: str, note_id: str, rank: int):
    return SimpleNamespace(participant_id=participant_id, note_id=note_id, rank=rank)


def test_borda_example_totals_and_tie():
    notes = [_note("A"), _note("B"), _note("C")]
    rankings = [
        _rank("p1", "A", 1),
        _rank("p1", "B", 2),
        _rank("p1", "C", 3),
        _rank("p2", "B", 1),
        _rank("p2", "A", 2),
        _rank("p2", "C", 3),
    ]

    scores = calculate_borda_scores(notes, rankings)
    totals = {score.note_id: score.total_score for score in scores}

    assert totals == {"A": 5, "B": 5, "C": 2}
    assert {scores[0].note_id, scores[1].note_id} == {"A", "B"}
    assert scores[2].note_id == "C"
    assert scores[0].average_rank == 1.5
    assert scores[2].participant_count == 2


def test_borda_order_is_total_desc_then_average_rank_asc():
    notes = [_note(str(i)) for i in range(5)]
    rankings = []
    orders = [
        ["0", "1", "2", "3", "4"],
        ["4", "3", "2", "1", "0"],
        ["2", "0", "4", "1", "3"],
        ["1", "2", "0", "3", "4"],
    ]
    for index, order in enumerate(orders):
        rankings.extend(_rank(f"p{index}", note_id, pos) for pos, note_id in enumerate(order, 1))

    scores = calculate_borda_scores(notes, rankings)

    for earlier, later in zip(scores, scores[1:]):
        assert earlier.total_score >= later.total_score
        if earlier.total_score == later.total_score:
            assert earlier.average_rank <= later.average_rank


def test_out_of_range_rank_is_clamped_like_last_place():
    notes = [_note(str(i)) for i in range(5)]
    stale = calculate_borda_scores(notes, [_rank("p1", "0", 99)])
    last = calculate_borda_scores(notes, [_rank("p1", "0", 5)])

    stale_total = {score.note_id: score.total_score for score in stale}
    last_total = {score.note_id: score.total_score for score in last}
    assert stale_total == last_total
    assert stale_total["0"] == 1


def test_rank_below_one_counts_as_first_place():
    notes = [_note("A"), _note("B")]
    scores = calculate_borda_scores(notes, [_rank("p1", "A", 0)])
    assert scores[0].note_id == "A"
    assert scores[0].total_score == 2


def test_rows_for_unknown_notes_are_ignored():
    notes = [_note("A")]
    scores = calculate_borda_scores(notes, [_rank("p1", "ghost", 1)])
    assert scores[0].total_score == 0
    assert scores[0].average_rank == 0.0


def test_borda_is_idempotent():
    notes = [_note("A"), _note("B"), _note("C")]
    rankings = [_rank("p1", "C", 1), _rank("p1", "A", 2), _rank("p1", "B", 3)]
    assert calculate_borda_scores(notes, rankings) == calculate_borda_scores(notes, rankings)


def test_validate_ranking_accepts_permutation():
    result = validate_ranking(
        ["A", "B", "C"],
        [
            {"note_id": "A", "rank": 1},
            {"note_id": "B", "rank": 2},
            {"note_id": "C", "rank": 3},
        ],
    )
    assert result.valid
    assert result.error is None


def test_validate_ranking_rejects_duplicate_rank():
    result = validate_ranking(
        ["A", "B", "C"],
        [
            {"note_id": "A", "rank": 1},
            {"note_id": "B", "rank": 1},
            {"note_id": "C", "rank": 3},
        ],
    )
    assert not result.valid
    assert result.error == "Ranks must be sequential from 1 to 3"


def test_validate_ranking_rejects_wrong_count():
    result = validate_ranking(
        ["A", "B", "C"], [{"note_id": "A", "rank": 1}, {"note_id": "B", "rank": 2}]
    )
    assert not result.valid
    assert result.error == "Must rank all 3 notes (received 2)"


def test_validate_ranking_rejects_unknown_and_repeated_notes():
    unknown = validate_ranking(
        ["A", "B"], [{"note_id": "A", "rank": 1}, {"note_id": "Z", "rank": 2}]
    )
    repeated = validate_ranking(
        ["A", "B"], [{"note_id": "A", "rank": 1}, {"note_id": "A", "rank": 2}]
    )
    assert unknown.error == "Invalid note ID: Z"
    assert repeated.error == "Note ranked more than once: A"


def test_validate_ranking_accepts_objects():
    entries = [SimpleNamespace(note_id="A", rank=2), SimpleNamespace(note_id="B", rank=1)]
    assert validate_ranking(["A", "B"], entries).valid


def test_ranking_progress_counts_full_submissions_only():
    rankings = [
        _rank("p1", "A", 1),
        _rank("p1", "B", 2),
        _rank("p2", "A", 1),
    ]

    progress = calculate_ranking_progress(["p1", "p2", "p3"], rankings, total_notes=2)

    assert progress.total_participants == 3
    assert progress.completed_participants == 1
    assert progress.percent_complete == 33
    assert progress.is_complete is False
    assert has_participant_completed("p1", rankings, 2)
    assert not has_participant_completed("p2", rankings, 2)


def test_ranking_progress_with_no_participants_is_not_complete():
    progress = calculate_ranking_progress([], [], total_notes=3)
    assert progress.percent_complete == 0
    assert progress.is_complete is False
