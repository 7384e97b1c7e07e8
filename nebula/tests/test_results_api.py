import pytest

from nebula.services import module_catalog


@pytest.fixture
def voted_room(client):
    workspace = client.post(
        "/api/workspaces", json={"name": "Healthcare at Home", "purpose": "Care beyond clinics"}
    ).json()
    base = f"/api/workspaces/{workspace['id']}"
    client.post(f"{base}/modules", json={"module_type": module_catalog.PAIRWISE_VOTING})
    ada = client.post(f"{base}/participants", json={"display_name": "Ada"}).json()
    grace = client.post(f"{base}/participants", json={"display_name": "Grace"}).json()
    tele = client.post(
        f"{base}/notes", json={"content": "Tele-triage", "participant_id": ada["id"]}
    ).json()
    kits = client.post(
        f"{base}/notes", json={"content": "Home test kits", "participant_id": grace["id"]}
    ).json()
    client.post(
        f"{base}/votes",
        json={"winner_note_id": tele["id"], "loser_note_id": kits["id"]},
        headers={"X-Participant-Id": grace["id"]},
    )
    return {"base": base, "ada": ada, "grace": grace, "notes": [tele, kits]}


def _cohort_reply(note_id):
    return {
        "summary": "Remote triage led the session.",
        "keyThemes": ["Remote care"],
        "topIdeas": [{"noteId": note_id, "content": "Tele-triage", "overallRank": 1}],
        "insights": "Clear winner.",
        "recommendations": "Start a triage pilot.",
    }


def _personal_reply(note_id, score=64):
    return {
        "personalSummary": "Your idea won the only comparison.",
        "alignmentScore": score,
        "topContributions": [{"noteId": note_id, "content": "Tele-triage", "impact": "Top idea"}],
        "insights": "You think about access first.",
    }


def test_cohort_results_lifecycle(client, voted_room, fake_llm):
    base = voted_room["base"]
    assert client.get(f"{base}/results/cohort").status_code == 404

    fake_llm.queue(_cohort_reply(voted_room["notes"][0]["id"]))
    created = client.post(f"{base}/results/cohort", json={"generated_by": "facilitator"})

    assert created.status_code == 201, created.text
    body = created.json()
    assert body["key_themes"] == ["Remote care"]
    assert body["generated_by"] == "facilitator"
    assert body["result_metadata"]["totalVotes"] == 1

    prompt = fake_llm.calls[0]["user"]
    assert "# Workshop: Healthcare at Home" in prompt
    assert "Tele-triage" in prompt

    latest = client.get(f"{base}/results/cohort").json()
    assert latest["id"] == body["id"]

    public = client.get(f"{base}/results/public").json()
    assert "id" not in public
    assert "result_metadata" not in public
    assert public["summary"] == "Remote triage led the session."


def test_cohort_generation_without_body(client, voted_room, fake_llm):
    fake_llm.queue(_cohort_reply(voted_room["notes"][0]["id"]))
    response = client.post(f"{voted_room['base']}/results/cohort")
    assert response.status_code == 201
    assert response.json()["generated_by"] is None


def test_bad_llm_reply_is_502_and_nothing_saved(client, voted_room, fake_llm):
    fake_llm.queue({"summary": "half an answer"})

    response = client.post(f"{voted_room['base']}/results/cohort")

    assert response.status_code == 502
    assert response.json()["detail"].startswith("Invalid response format from AI")
    assert client.get(f"{voted_room['base']}/results/cohort").status_code == 404


def test_disabled_ai_results_are_refused(client, voted_room, fake_llm):
    client.patch(voted_room["base"], json={"ai_results_enabled": False})
    response = client.post(f"{voted_room['base']}/results/cohort")
    assert response.status_code == 403
    assert fake_llm.calls == []


def test_personalized_results_for_caller(client, voted_room, fake_llm):
    base = voted_room["base"]
    headers = {"X-Participant-Id": voted_room["ada"]["id"]}
    assert client.get(f"{base}/results/personalized", headers=headers).status_code == 404

    fake_llm.queue(_personal_reply(voted_room["notes"][0]["id"]))
    created = client.post(f"{base}/results/personalized", headers=headers)

    assert created.status_code == 201, created.text
    assert created.json()["participant_id"] == voted_room["ada"]["id"]
    assert created.json()["alignment_score"] == 64
    assert "Participant: Ada" in fake_llm.calls[0]["user"]

    fetched = client.get(f"{base}/results/personalized", headers=headers).json()
    assert fetched["id"] == created.json()["id"]

    assert client.post(f"{base}/results/personalized").status_code == 401


def test_generate_all_links_latest_cohort(client, voted_room, fake_llm):
    base = voted_room["base"]
    note_id = voted_room["notes"][0]["id"]
    fake_llm.queue(_cohort_reply(note_id))
    cohort = client.post(f"{base}/results/cohort").json()

    fake_llm.queue(_personal_reply(note_id, 70))
    fake_llm.queue(_personal_reply(note_id, 30))
    response = client.post(f"{base}/results/personalized/generate-all")

    assert response.status_code == 200
    body = response.json()
    assert body["cohort_result_id"] == cohort["id"]
    assert set(body["succeeded"]) == {voted_room["ada"]["id"], voted_room["grace"]["id"]}
    assert body["failed"] == []
    assert "## Group outcome" in fake_llm.calls[-1]["user"]
