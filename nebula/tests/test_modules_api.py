import pytest

from nebula.services import module_catalog


@pytest.fixture
def room(client):
    """A workspace with two participants and three ideas."""
    workspace = client.post(
        "/api/workspaces", json={"name": "Mobility 2040", "status": "open"}
    ).json()
    base = f"/api/workspaces/{workspace['id']}"
    ada = client.post(f"{base}/participants", json={"display_name": "Ada"}).json()
    grace = client.post(f"{base}/participants", json={"display_name": "Grace"}).json()
    notes = [
        client.post(f"{base}/notes", json={"content": content}).json()
        for content in ("Autonomous shuttles", "Bike highways", "Mobility wallet")
    ]
    return {
        "base": base,
        "workspace": workspace,
        "ada": {"X-Participant-Id": ada["id"]},
        "grace": {"X-Participant-Id": grace["id"]},
        "notes": notes,
    }


def test_participant_header_is_required(client, room):
    missing = client.get(f"{room['base']}/pairwise/next-pair")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "No participant session found. Please rejoin the workspace."

    other = client.post("/api/workspaces", json={"name": "Elsewhere"}).json()
    stranger = client.post(
        f"/api/workspaces/{other['id']}/participants", json={"display_name": "Eve"}
    ).json()
    forbidden = client.get(
        f"{room['base']}/pairwise/next-pair", headers={"X-Participant-Id": stranger["id"]}
    )
    assert forbidden.status_code == 403


# Pairwise voting


def test_pairwise_flow_until_all_pairs_voted(client, room):
    seen = set()
    for _ in range(3):
        response = client.get(f"{room['base']}/pairwise/next-pair", headers=room["ada"])
        body = response.json()
        assert body["pair"] is not None
        pair = frozenset((body["pair"]["note_a"]["id"], body["pair"]["note_b"]["id"]))
        assert pair not in seen
        seen.add(pair)
        vote = client.post(
            f"{room['base']}/votes",
            json={
                "winner_note_id": body["pair"]["note_a"]["id"],
                "loser_note_id": body["pair"]["note_b"]["id"],
            },
            headers=room["ada"],
        )
        assert vote.status_code == 201

    done = client.get(f"{room['base']}/pairwise/next-pair", headers=room["ada"]).json()
    assert done["pair"] is None
    assert done["message"] == "All pairs voted"
    assert done["progress"] == {
        "total_pairs": 3,
        "completed_pairs": 3,
        "percent_complete": 100,
        "is_complete": True,
    }

    # Progress is per participant.
    fresh = client.get(f"{room['base']}/pairwise/next-pair", headers=room["grace"]).json()
    assert fresh["progress"]["completed_pairs"] == 0

    stats = client.get(f"{room['base']}/pairwise/stats").json()
    assert sum(row["wins"] for row in stats) == 3
    assert stats[0]["wins"] >= stats[-1]["wins"]


def test_not_enough_notes_message(client):
    workspace = client.post("/api/workspaces", json={"name": "Tiny"}).json()
    base = f"/api/workspaces/{workspace['id']}"
    participant = client.post(f"{base}/participants", json={"display_name": "Solo"}).json()
    client.post(f"{base}/notes", json={"content": "Only idea"})

    body = client.get(
        f"{base}/pairwise/next-pair", headers={"X-Participant-Id": participant["id"]}
    ).json()

    assert body["pair"] is None
    assert body["message"] == "Not enough notes to vote"
    assert body["progress"]["is_complete"] is False


def test_no_pairs_within_categories_is_not_reported_as_done(client):
    workspace = client.post(
        "/api/workspaces", json={"name": "Split", "pairwise_scope": "within_categories"}
    ).json()
    base = f"/api/workspaces/{workspace['id']}"
    participant = client.post(f"{base}/participants", json={"display_name": "Solo"}).json()
    for name in ("Energy", "Water"):
        category = client.post(f"{base}/categories", json={"name": name}).json()
        client.post(f"{base}/notes", json={"content": f"{name} idea", "category_id": category["id"]})

    body = client.get(
        f"{base}/pairwise/next-pair", headers={"X-Participant-Id": participant["id"]}
    ).json()

    assert body["pair"] is None
    assert body["progress"]["total_pairs"] == 0
    assert body["progress"]["is_complete"] is False
    assert body["message"] == "Not enough notes to vote"


def test_vote_validation(client, room):
    note_id = room["notes"][0]["id"]
    same = client.post(
        f"{room['base']}/votes",
        json={"winner_note_id": note_id, "loser_note_id": note_id},
        headers=room["ada"],
    )
    unknown = client.post(
        f"{room['base']}/votes",
        json={"winner_note_id": note_id, "loser_note_id": "nope"},
        headers=room["ada"],
    )
    assert same.status_code == 400
    assert unknown.status_code == 404


# Stack ranking


def _ranking_payload(notes, order):
    return {"rankings": [{"note_id": notes[i]["id"], "rank": rank} for rank, i in enumerate(order, 1)]}


def test_stack_ranking_submit_leaderboard_and_progress(client, room):
    notes = room["notes"]
    first = client.post(
        f"{room['base']}/rankings/bulk", json=_ranking_payload(notes, [0, 1, 2]), headers=room["ada"]
    )
    assert first.status_code == 200, first.text
    assert [row["rank"] for row in first.json()] == [1, 2, 3]

    progress = client.get(f"{room['base']}/rankings/progress").json()
    assert progress["completed_participants"] == 1
    assert progress["percent_complete"] == 50
    assert progress["is_complete"] is False

    client.post(
        f"{room['base']}/rankings/bulk", json=_ranking_payload(notes, [1, 0, 2]), headers=room["grace"]
    )
    leaderboard = client.get(f"{room['base']}/rankings/leaderboard").json()
    assert {leaderboard[0]["note_id"], leaderboard[1]["note_id"]} == {notes[0]["id"], notes[1]["id"]}
    assert [row["total_score"] for row in leaderboard] == [5, 5, 2]

    status = client.get(f"{room['base']}/rankings/status", headers=room["grace"]).json()
    assert status["has_completed"] is True
    assert status["total_notes"] == 3


def test_resubmitting_replaces_previous_ranking(client, room):
    notes = room["notes"]
    url = f"{room['base']}/rankings/bulk"
    client.post(url, json=_ranking_payload(notes, [0, 1, 2]), headers=room["ada"])
    client.post(url, json=_ranking_payload(notes, [2, 1, 0]), headers=room["ada"])

    leaderboard = client.get(f"{room['base']}/rankings/leaderboard").json()
    assert leaderboard[0]["note_id"] == notes[2]["id"]
    assert leaderboard[0]["participant_count"] == 1


def test_invalid_ranking_rejected(client, room):
    notes = room["notes"]
    duplicate = {
        "rankings": [
            {"note_id": notes[0]["id"], "rank": 1},
            {"note_id": notes[1]["id"], "rank": 1},
            {"note_id": notes[2]["id"], "rank": 3},
        ]
    }
    short = {"rankings": [{"note_id": notes[0]["id"], "rank": 1}]}

    response = client.post(f"{room['base']}/rankings/bulk", json=duplicate, headers=room["ada"])
    assert response.status_code == 400
    assert response.json()["detail"] == "Ranks must be sequential from 1 to 3"

    response = client.post(f"{room['base']}/rankings/bulk", json=short, headers=room["ada"])
    assert response.json()["detail"] == "Must rank all 3 notes (received 1)"


# Marketplace


def test_marketplace_allocation_and_budget(client, room):
    notes = room["notes"]
    url = f"{room['base']}/marketplace-allocations/bulk"
    response = client.post(
        url,
        json={
            "allocations": [
                {"note_id": notes[0]["id"], "coins": 70},
                {"note_id": notes[1]["id"], "coins": 30},
                {"note_id": notes[2]["id"], "coins": 0},
            ]
        },
        headers=room["ada"],
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["coin_budget"] == 100
    assert body["spent"] == 100
    assert body["remaining"] == 0
    assert len(body["allocations"]) == 2

    budget = client.get(f"{room['base']}/marketplace/budget", headers=room["grace"]).json()
    assert budget == {"coin_budget": 100, "spent": 0, "remaining": 100}

    leaderboard = client.get(f"{room['base']}/marketplace/leaderboard").json()
    assert leaderboard[0]["note_id"] == notes[0]["id"]
    assert leaderboard[0]["total_coins"] == 70

    progress = client.get(f"{room['base']}/marketplace/progress").json()
    assert progress["completed_participants"] == 1


def test_marketplace_rejects_over_budget_and_negative(client, room):
    notes = room["notes"]
    url = f"{room['base']}/marketplace-allocations/bulk"
    over = client.post(
        url,
        json={"allocations": [{"note_id": notes[0]["id"], "coins": 101}]},
        headers=room["ada"],
    )
    negative = client.post(
        url,
        json={"allocations": [{"note_id": notes[0]["id"], "coins": -1}]},
        headers=room["ada"],
    )
    assert over.status_code == 400
    assert over.json()["detail"] == "Total allocation (101) exceeds budget (100)"
    assert negative.json()["detail"] == "Coin allocation cannot be negative"


def test_workspace_coin_budget_overrides_default(client, room):
    client.patch(room["base"], json={"marketplace_coin_budget": 20})
    over = client.post(
        f"{room['base']}/marketplace-allocations/bulk",
        json={"allocations": [{"note_id": room["notes"][0]["id"], "coins": 25}]},
        headers=room["ada"],
    )
    assert over.json()["detail"] == "Total allocation (25) exceeds budget (20)"


# Priority matrix and staircase


def test_matrix_upsert_and_snap(client, room):
    client.post(
        f"{room['base']}/modules",
        json={
            "module_type": module_catalog.PRIORITY_MATRIX,
            "config": {"snap_to_grid": True, "grid_size": 4},
        },
    )
    note_id = room["notes"][0]["id"]
    url = f"{room['base']}/priority-matrix/positions"

    first = client.put(url, json={"note_id": note_id, "x_coord": 0.3, "y_coord": 0.6}, headers=room["ada"])
    assert first.status_code == 200
    assert first.json()["x_coord"] == 0.25
    assert first.json()["y_coord"] == 0.5

    client.put(url, json={"note_id": note_id, "x_coord": 0.9, "y_coord": 0.1}, headers=room["grace"])
    board = client.get(f"{room['base']}/priority-matrix").json()
    assert len(board["positions"]) == 1
    assert board["positions"][0]["x_coord"] == 1.0
    assert board["config"]["x_axis_label"] == "Impact"

    outside = client.put(url, json={"note_id": note_id, "x_coord": 1.2, "y_coord": 0.1}, headers=room["ada"])
    assert outside.status_code == 400
    assert outside.json()["detail"] == "Coordinates must be between 0 and 1"


def test_staircase_scores_and_slot_offsets(client, room):
    url = f"{room['base']}/staircase-positions"
    notes = room["notes"]

    first = client.post(url, json={"note_id": notes[0]["id"], "score": 7}, headers=room["ada"])
    second = client.post(url, json={"note_id": notes[1]["id"], "score": 7}, headers=room["ada"])
    assert first.json()["slot_offset"] == 0
    assert second.json()["slot_offset"] == 1

    too_high = client.post(url, json={"note_id": notes[2]["id"], "score": 11}, headers=room["ada"])
    fractional = client.post(url, json={"note_id": notes[2]["id"], "score": 2.5}, headers=room["ada"])
    assert too_high.json()["detail"] == "Score must be between 0 and 10"
    assert fractional.json()["detail"] == "Score must be a whole number"

    board = client.get(f"{room['base']}/staircase").json()
    assert [row["note_id"] for row in board["positions"]] == [notes[0]["id"], notes[1]["id"]]
    assert board["config"]["max_score"] == 10


def test_positions_keyed_by_module_run(client, room):
    module = client.post(
        f"{room['base']}/modules", json={"module_type": module_catalog.PRIORITY_MATRIX}
    ).json()
    run = client.post(f"{room['base']}/modules/{module['id']}/runs").json()
    note_id = room["notes"][0]["id"]
    url = f"{room['base']}/priority-matrix/positions"

    client.put(url, json={"note_id": note_id, "x_coord": 0.2, "y_coord": 0.2}, headers=room["ada"])
    client.put(
        url,
        json={"note_id": note_id, "x_coord": 0.8, "y_coord": 0.8, "module_run_id": run["id"]},
        headers=room["ada"],
    )

    default_board = client.get(f"{room['base']}/priority-matrix").json()
    run_board = client.get(
        f"{room['base']}/priority-matrix", params={"module_run_id": run["id"]}
    ).json()
    assert default_board["positions"][0]["x_coord"] == 0.2
    assert run_board["positions"][0]["x_coord"] == 0.8


# Survey


def test_survey_responses_upsert_and_summary(client, room):
    question = client.post(
        f"{room['base']}/survey/questions", json={"question_text": "How feasible is this?"}
    ).json()
    url = f"{room['base']}/survey-responses"
    note_id = room["notes"][0]["id"]

    client.post(url, json={"question_id": question["id"], "note_id": note_id, "score": 2}, headers=room["ada"])
    client.post(url, json={"question_id": question["id"], "note_id": note_id, "score": 4}, headers=room["ada"])
    client.post(url, json={"question_id": question["id"], "note_id": note_id, "score": 5}, headers=room["grace"])
    invalid = client.post(
        url, json={"question_id": question["id"], "note_id": note_id, "score": 6}, headers=room["ada"]
    )
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "Score must be between 1 and 5"

    summary = client.get(f"{room['base']}/survey/summary").json()
    top = summary["notes"][0]
    assert top["note_id"] == note_id
    assert top["average_score"] == 4.5
    assert top["response_count"] == 2
    assert [q["question_text"] for q in summary["questions"]] == ["How feasible is this?"]
