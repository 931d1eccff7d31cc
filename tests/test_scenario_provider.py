"""
Tests for ScenarioProvider (assignment-backed and generated practice sets).
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.exceptions import NotFoundError
from app.models.practice import ReframeAssignment, ThoughtRecord
from app.services.scenario_provider import ScenarioProvider

GENERATED = {
    "scenarios": [
        {
            "scenario": "Your manager asks to talk tomorrow.",
            "cognitiveDistortion": "catastrophizing",
            "emotionCategory": "anxiety",
            "options": [
                {"text": "I'm definitely getting fired.", "isCorrect": False, "explanation": "Jumps to the worst case."},
                {"text": "It could be about many things; I'll find out tomorrow.", "isCorrect": True, "explanation": "Balanced."},
                {"text": "I should quit before they fire me.", "isCorrect": False, "explanation": "Acts on a guess."},
            ],
        }
    ],
    "thoughtContent": "I always mess things up",
    "generalFeedback": "Notice the pattern of predicting the worst.",
}


def openai_returning(content: str) -> MagicMock:
    client = MagicMock()
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


async def thought_record(db, user) -> ThoughtRecord:
    record = ThoughtRecord(
        user_id=user.id,
        automatic_thoughts="I always mess things up",
        cognitive_distortions=["overgeneralization", "catastrophizing"],
        emotion_category="anxiety",
    )
    db.add(record)
    await db.flush()
    return record


class TestScenarioProvider:
    @pytest.mark.asyncio
    async def test_generates_from_thought_record(self, db, make_user):
        user = await make_user()
        record = await thought_record(db, user)
        openai_client = openai_returning(json.dumps(GENERATED))

        practice_set = await ScenarioProvider(db, openai_client=openai_client).from_thought_record(
            record.id, user.id
        )

        assert len(practice_set.scenarios) == 1
        assert practice_set.scenarios[0].options[1].is_correct
        prompt = openai_client.chat.completions.create.await_args.kwargs["messages"][1]["content"]
        assert "I always mess things up" in prompt
        assert "overgeneralization, catastrophizing" in prompt

    @pytest.mark.asyncio
    async def test_unusable_output_is_no_content(self, db, make_user):
        user = await make_user()
        record = await thought_record(db, user)

        with pytest.raises(NotFoundError):
            await ScenarioProvider(db, openai_client=openai_returning("not json")).from_thought_record(
                record.id, user.id
            )

        two_correct = json.loads(json.dumps(GENERATED))
        two_correct["scenarios"][0]["options"][0]["isCorrect"] = True
        with pytest.raises(NotFoundError):
            await ScenarioProvider(db, openai_client=openai_returning(json.dumps(two_correct))).generate(record)

    @pytest.mark.asyncio
    async def test_empty_generation_is_no_content(self, db, make_user):
        user = await make_user()
        record = await thought_record(db, user)

        with pytest.raises(NotFoundError):
            await ScenarioProvider(db, openai_client=openai_returning('{"scenarios": []}')).generate(record)

    @pytest.mark.asyncio
    async def test_without_openai_key(self, db, make_user, monkeypatch):
        monkeypatch.setattr("app.services.scenario_provider.settings.openai_api_key", "")
        user = await make_user()
        record = await thought_record(db, user)

        with pytest.raises(NotFoundError):
            await ScenarioProvider(db).generate(record)

    @pytest.mark.asyncio
    async def test_other_users_thought_record_hidden(self, db, make_user):
        owner = await make_user("Owner")
        other = await make_user("Other")
        record = await thought_record(db, owner)

        with pytest.raises(NotFoundError):
            await ScenarioProvider(db, openai_client=openai_returning(json.dumps(GENERATED))).from_thought_record(
                record.id, other.id
            )

    @pytest.mark.asyncio
    async def test_assignment_scenarios(self, db, make_user):
        therapist = await make_user("Dr. Kim")
        client = await make_user("Lee", therapist=therapist)
        stranger = await make_user("Stranger")
        assignment = ReframeAssignment(assigned_by=therapist.id, assigned_to=client.id, reframe_data=GENERATED)
        db.add(assignment)
        await db.flush()

        provider = ScenarioProvider(db, openai_client=MagicMock())
        practice_set = await provider.from_assignment(assignment.id, client.id)
        assert practice_set.scenarios[0].cognitive_distortion == "catastrophizing"

        with pytest.raises(NotFoundError):
            await provider.from_assignment(assignment.id, stranger.id)

    @pytest.mark.asyncio
    async def test_assignment_without_scenarios(self, db, make_user):
        therapist = await make_user("Dr. Kim")
        client = await make_user("Lee")
        assignment = ReframeAssignment(assigned_by=therapist.id, assigned_to=client.id, reframe_data={"scenarios": []})
        db.add(assignment)
        await db.flush()

        with pytest.raises(NotFoundError):
            await ScenarioProvider(db, openai_client=MagicMock()).from_assignment(assignment.id, client.id)
