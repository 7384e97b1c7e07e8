import pytest
from fastapi import HTTPException

from nebula.data.workspace_manager import WorkspaceManager
from nebula.models.results import AiUsageLog, CohortResult, PersonalizedResult
from nebula.models.voting import Vote
from nebula.schemas.workspace import ModuleUpdate
from nebula.services import module_catalog
from nebula.services.llm_client import LLMCallError
from nebula.services.results_generator import (
    ResultsGenerationError,
    ResultsGenerator,
    build_cohort_prompt,
    parse_cohort_payload,
)
from nebula.services.workspace_snapshot import combined_ranking, load_workspace_snapshot
from nebula.tests.fake_llm import FakeLLMClient


def _cohort_reply(note_id: str, **overrides):
    reply = {
        "summary": "The group converged on self-service tooling.",
        "keyThemes": ["Self-service", "Automation"],
        "topIdeas": [{"noteId": note_id, "content": "Self-service portal", "overallRank": 1}],
        "insights": "Strong agreement at the top of the list.",
        "recommendations": "Pilot the portal next quarter.",
    }
    reply.update(overrides)
    return reply


def _personal_reply(note_id: str):
    return {
        "personalSummary": "Your ideas shaped the top of the ranking.",
        "alignmentScore": 82,
        "topContributions": [
            {"noteId": note_id, "content": "Self-service portal", "impact": "Ranked first"}
        ],
        "insights": "You favoured customer-facing ideas.",
    }


@pytest.fixture
def seeded(db_session, workspace_factory, participant_factory, note_factory, enable_modules):
    workspace = workspace_factory()
    ada = participant_factory(workspace, "Ada")
    grace = participant_factory(workspace, "Grace")
    portal = note_factory(workspace, "Self-service portal", participant_id=ada.id)
    chatbot = note_factory(workspace, "Support chatbot", participant_id=grace.id)
    enable_modules(workspace, module_catalog.PAIRWISE_VOTING)
    db_session.add(
        Vote(
            workspace_id=workspace.id,
            participant_id=grace.id,
            winner_note_id=portal.id,
            loser_note_id=chatbot.id,
        )
    )
    db_session.commit()
    return workspace, [ada, grace], [portal, chatbot]


def _cohort_count(db_session, workspace_id):
    return db_session.query(CohortResult).filter(CohortResult.workspace_id == workspace_id).count()


def test_parse_cohort_payload_rejects_missing_insights():
    content = '{"summary": "s", "keyThemes": [], "topIdeas": []}'
    with pytest.raises(ResultsGenerationError):
        parse_cohort_payload(content)


def test_parse_cohort_payload_rejects_wrong_types_and_bad_json():
    with pytest.raises(ResultsGenerationError):
        parse_cohort_payload('{"summary": 1, "keyThemes": [], "topIdeas": [], "insights": "i"}')
    with pytest.raises(ResultsGenerationError):
        parse_cohort_payload("not json")
    with pytest.raises(ResultsGenerationError):
        parse_cohort_payload("[1, 2]")


def test_prompt_only_mentions_enabled_modules(db_session, seeded):
    workspace, _, notes = seeded
    snapshot = load_workspace_snapshot(db_session, workspace)

    prompt = build_cohort_prompt(snapshot, combined_ranking(snapshot))

    assert "Pairwise Voting" in prompt
    assert "pairwiseWins" in prompt
    for absent in ("Stack Ranking", "Borda", "bordaScore", "Marketplace", "marketplaceCoins",
                   "Priority Matrix", "Staircase", "Survey"):
        assert absent not in prompt
    assert "All Ideas Ranked by Combined Score" in prompt
    assert f"#1 [Uncategorized] Self-service portal (id: {notes[0].id}" in prompt


def test_disabled_module_rows_are_not_loaded(db_session, seeded):
    workspace, _, _ = seeded
    manager = WorkspaceManager(db_session)
    module = manager.get_module(workspace.id, module_catalog.PAIRWISE_VOTING)
    manager.update_module(workspace, module.id, ModuleUpdate(enabled=False))

    snapshot = load_workspace_snapshot(db_session, workspace)

    assert snapshot.votes == []
    assert all(item.score == 0 for item in combined_ranking(snapshot))


@pytest.mark.anyio("asyncio")
async def test_generate_cohort_results_persists_validated_result(db_session, seeded):
    workspace, _, notes = seeded
    fake = FakeLLMClient([_cohort_reply(notes[0].id)])

    result = await ResultsGenerator(db_session, fake).generate_cohort_results(workspace, "facilitator")

    assert result.summary.startswith("The group")
    assert result.top_ideas == [
        {"noteId": notes[0].id, "content": "Self-service portal", "overallRank": 1.0}
    ]
    assert result.result_metadata["totalNotes"] == 2
    assert result.result_metadata["totalVotes"] == 1
    assert result.result_metadata["activeModules"] == [module_catalog.PAIRWISE_VOTING]
    assert result.generated_by == "facilitator"
    usage = db_session.query(AiUsageLog).filter(AiUsageLog.workspace_id == workspace.id).one()
    assert usage.operation == "cohort_results"
    assert usage.total_tokens == 1500
    assert usage.cost_cents == 1


@pytest.mark.anyio("asyncio")
async def test_invalid_reply_persists_nothing(db_session, seeded):
    workspace, _, notes = seeded
    reply = _cohort_reply(notes[0].id)
    del reply["insights"]
    fake = FakeLLMClient([reply])

    with pytest.raises(ResultsGenerationError):
        await ResultsGenerator(db_session, fake).generate_cohort_results(workspace)

    assert _cohort_count(db_session, workspace.id) == 0


@pytest.mark.anyio("asyncio")
async def test_llm_failure_persists_nothing(db_session, seeded):
    workspace, _, _ = seeded
    fake = FakeLLMClient([LLMCallError("timeout", retryable=True)])

    with pytest.raises(ResultsGenerationError):
        await ResultsGenerator(db_session, fake).generate_cohort_results(workspace)

    assert _cohort_count(db_session, workspace.id) == 0


@pytest.mark.anyio("asyncio")
async def test_generation_refused_without_notes_or_when_disabled(
    db_session, workspace_factory
):
    empty = workspace_factory()
    disabled = workspace_factory(ai_results_enabled=False)
    generator = ResultsGenerator(db_session, FakeLLMClient())

    with pytest.raises(HTTPException) as no_notes:
        await generator.generate_cohort_results(empty)
    with pytest.raises(HTTPException) as refused:
        await generator.generate_cohort_results(disabled)

    assert no_notes.value.status_code == 400
    assert no_notes.value.detail == "No notes found for this workspace"
    assert refused.value.status_code == 403


@pytest.mark.anyio("asyncio")
async def test_personalized_prompt_carries_participant_context(db_session, seeded):
    workspace, participants, notes = seeded
    fake = FakeLLMClient([_cohort_reply(notes[0].id), _personal_reply(notes[0].id)])
    generator = ResultsGenerator(db_session, fake)
    cohort = await generator.generate_cohort_results(workspace)

    result = await generator.generate_personalized_result(workspace, participants[0].id)

    prompt = fake.calls[-1]["user"]
    assert "Participant: Ada" in prompt
    assert "Pairwise votes cast: 0" in prompt
    assert "Self-service portal" in prompt
    assert cohort.summary in prompt
    assert result.alignment_score == 82
    assert result.cohort_result_id == cohort.id


@pytest.mark.anyio("asyncio")
async def test_batch_continues_after_a_participant_fails(db_session, seeded):
    workspace, participants, notes = seeded
    fake = FakeLLMClient([
        _personal_reply(notes[0].id),
        {"personalSummary": "missing everything else"},
    ])

    succeeded, failed = await ResultsGenerator(db_session, fake).generate_all_personalized_results(
        workspace
    )

    assert len(succeeded) == 1
    assert len(failed) == 1
    assert set(succeeded + failed) == {participant.id for participant in participants}
    stored = (
        db_session.query(PersonalizedResult)
        .filter(PersonalizedResult.workspace_id == workspace.id)
        .all()
    )
    assert [row.participant_id for row in stored] == succeeded
