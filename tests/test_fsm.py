"""
Tests for the practice session state machine.
"""

from typing import List, Optional

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.fsm.machine import PracticeSessionEngine, score_answer
from app.fsm.states import Achievement, level_for_score
from app.schemas.practice import GameUpdates, PracticeScenario, ResultSubmission


def make_scenario(correct_index: int = 0, options: int = 3) -> PracticeScenario:
    return PracticeScenario.model_validate({
        "scenario": "Your friend didn't reply to your message all day.",
        "cognitiveDistortion": "mind reading",
        "emotionCategory": "anxiety",
        "options": [
            {"text": f"Option {i}", "isCorrect": i == correct_index, "explanation": ""}
            for i in range(options)
        ],
    })


class FakeGamification:
    """Records submissions; acts like the store for duplicate session ids."""

    def __init__(self, pending: bool = False):
        self.pending = pending
        self.submissions: List[ResultSubmission] = []
        self.applied = {}

    async def apply_practice_result(self, user_id: int, submission: ResultSubmission) -> Optional[GameUpdates]:
        self.submissions.append(submission)
        if self.pending:
            return None
        if submission.session_id in self.applied:
            return self.applied[submission.session_id].model_copy(update={"duplicate": True})
        updates = GameUpdates(
            new_total_score=submission.score,
            new_level=level_for_score(submission.score),
            prev_level=1,
            new_streak=1,
        )
        self.applied[submission.session_id] = updates
        return updates


class TestScoring:
    def test_correct_answer_speed_bonus(self):
        assert score_answer(True, 0) == 150
        assert score_answer(True, 2000) == 148
        assert score_answer(True, 10999) == 140
        assert score_answer(True, 50000) == 100
        assert score_answer(True, 120000) == 100

    def test_incorrect_answer_scores_zero(self):
        assert score_answer(False, 0) == 0
        assert score_answer(False, 5000) == 0

    def test_level_is_derived(self):
        assert level_for_score(0) == 1
        assert level_for_score(499) == 1
        assert level_for_score(500) == 2
        assert level_for_score(1250) == 3


class TestPracticeSessionEngine:
    """Session lifecycle: start, answer in order, finalize."""

    @pytest.mark.asyncio
    async def test_three_scenario_session(self):
        """Correct in 2s, correct in 10s, then wrong: 148 + 140 + 0."""
        gateway = FakeGamification()
        engine = PracticeSessionEngine(gateway)
        session = engine.start([make_scenario(0), make_scenario(1), make_scenario(2)], user_id=7)

        assert engine.select_option(session, 0, 0, 2000) == 148
        assert engine.select_option(session, 1, 1, 10000) == 288
        assert engine.select_option(session, 2, 0, 4000) == 288

        summary = await engine.finalize(session)

        assert summary.total_score == 288
        assert summary.correct_answers == 2
        assert summary.accuracy == pytest.approx(2 / 3)
        assert summary.game_updates.new_total_score == 288
        assert not summary.pending

        submission = gateway.submissions[0]
        assert submission.session_id == session.session_id
        assert submission.total_questions == 3
        assert submission.time_spent == 16000
        assert [c.score for c in submission.user_choices] == [148, 140, 0]

    @pytest.mark.asyncio
    async def test_all_correct_instant_answers(self):
        engine = PracticeSessionEngine(FakeGamification())
        n = 5
        session = engine.start([make_scenario(2) for _ in range(n)], user_id=1)

        for index in range(n):
            engine.select_option(session, index, 2, 0)

        summary = await engine.finalize(session)
        assert summary.total_score == n * 150
        assert summary.accuracy == 1.0

    def test_empty_scenarios_rejected(self):
        engine = PracticeSessionEngine(FakeGamification())
        with pytest.raises(NotFoundError):
            engine.start([], user_id=1)

    def test_out_of_order_answer_rejected_without_change(self):
        engine = PracticeSessionEngine(FakeGamification())
        session = engine.start([make_scenario(), make_scenario()], user_id=1)

        with pytest.raises(ValidationError):
            engine.select_option(session, 1, 0, 1000)

        assert session.user_choices == ()
        assert session.total_score == 0

        engine.select_option(session, 0, 0, 1000)
        with pytest.raises(ValidationError):
            engine.select_option(session, 0, 0, 1000)
        assert len(session.user_choices) == 1

    def test_unknown_option_rejected(self):
        engine = PracticeSessionEngine(FakeGamification())
        session = engine.start([make_scenario(options=3)], user_id=1)

        with pytest.raises(ValidationError):
            engine.select_option(session, 0, 3, 1000)
        with pytest.raises(ValidationError):
            engine.select_option(session, 0, -1, 1000)
        assert session.next_index == 0

    def test_negative_time_rejected(self):
        engine = PracticeSessionEngine(FakeGamification())
        session = engine.start([make_scenario()], user_id=1)

        with pytest.raises(ValidationError):
            engine.select_option(session, 0, 0, -1)

    def test_answers_after_completion_rejected(self):
        engine = PracticeSessionEngine(FakeGamification())
        session = engine.start([make_scenario()], user_id=1)
        engine.select_option(session, 0, 0, 0)

        with pytest.raises(ValidationError):
            engine.select_option(session, 1, 0, 0)

    @pytest.mark.asyncio
    async def test_finalize_requires_complete_session(self):
        gateway = FakeGamification()
        engine = PracticeSessionEngine(gateway)
        session = engine.start([make_scenario(), make_scenario()], user_id=1)
        engine.select_option(session, 0, 0, 0)

        with pytest.raises(ValidationError):
            await engine.finalize(session)
        assert gateway.submissions == []

    @pytest.mark.asyncio
    async def test_finalize_twice_reports_duplicate(self):
        gateway = FakeGamification()
        engine = PracticeSessionEngine(gateway)
        session = engine.start([make_scenario()], user_id=1)
        engine.select_option(session, 0, 0, 0)

        first = await engine.finalize(session)
        second = await engine.finalize(session)

        assert first.game_updates.duplicate is False
        assert second.game_updates.duplicate is True
        assert second.game_updates.new_total_score == first.game_updates.new_total_score

    @pytest.mark.asyncio
    async def test_pending_when_gateway_defers(self):
        engine = PracticeSessionEngine(FakeGamification(pending=True))
        session = engine.start([make_scenario()], user_id=1)
        engine.select_option(session, 0, 0, 0)

        summary = await engine.finalize(session)
        assert summary.pending
        assert summary.total_score == 150


class TestPracticeScenarioValidation:
    def test_exactly_one_correct_option(self):
        with pytest.raises(ValueError):
            PracticeScenario.model_validate({
                "scenario": "x",
                "options": [
                    {"text": "a", "isCorrect": True},
                    {"text": "b", "isCorrect": True},
                ],
            })

    def test_needs_two_options(self):
        with pytest.raises(ValueError):
            PracticeScenario.model_validate({
                "scenario": "x",
                "options": [{"text": "a", "isCorrect": True}],
            })


class TestAchievement:
    def test_display_names(self):
        assert Achievement.STREAK_7.display_name == "7-Day Streak"
        assert Achievement.PERFECT_SCORE.value == "perfect_score"
