"""
Practice Session Machine - drives one Reframe Coach attempt.

Scenarios are answered strictly in order. Each answer is scored when it is
recorded; the session is finalized once every scenario has an answer.
"""

import logging
import uuid
from typing import List, Optional, Protocol, Sequence, Tuple

from app.exceptions import NotFoundError, ValidationError
from app.schemas.practice import (
    GameUpdates,
    PracticeScenario,
    PracticeSummary,
    ResultSubmission,
    UserChoice,
)

logger = logging.getLogger(__name__)

BASE_POINTS = 100
MAX_SPEED_BONUS = 50


class GamificationGateway(Protocol):
    """
    Whatever applies a finished session to the user's profile.

    Returns None when the result was accepted for later delivery
    (e.g. queued in the client outbox) rather than applied now.
    """

    async def apply_practice_result(
        self, user_id: int, submission: ResultSubmission
    ) -> Optional[GameUpdates]:
        ...


def score_answer(is_correct: bool, elapsed_ms: int) -> int:
    """100 for a correct answer plus a speed bonus that decays to 0 after 50s."""
    if not is_correct:
        return 0
    return BASE_POINTS + max(0, MAX_SPEED_BONUS - elapsed_ms // 1000)


class PracticeSession:
    """
    One attempt at a fixed scenario sequence.

    Not persisted mid-way; discarded once its result is submitted.
    """

    def __init__(
        self,
        scenarios: Sequence[PracticeScenario],
        user_id: int,
        session_id: Optional[str] = None,
        assignment_id: Optional[int] = None,
        thought_record_id: Optional[int] = None,
    ):
        if not scenarios:
            raise NotFoundError("No practice scenarios available for this session")

        self.scenarios: Tuple[PracticeScenario, ...] = tuple(scenarios)
        self.user_id = user_id
        self.session_id = session_id or uuid.uuid4().hex
        self.assignment_id = assignment_id
        self.thought_record_id = thought_record_id
        self._choices: List[UserChoice] = []

    @property
    def user_choices(self) -> Tuple[UserChoice, ...]:
        return tuple(self._choices)

    @property
    def next_index(self) -> int:
        return len(self._choices)

    @property
    def is_complete(self) -> bool:
        return len(self._choices) == len(self.scenarios)

    @property
    def total_score(self) -> int:
        return sum(choice.score for choice in self._choices)

    @property
    def correct_answers(self) -> int:
        return sum(1 for choice in self._choices if choice.is_correct)

    @property
    def time_spent(self) -> int:
        return sum(choice.time_spent for choice in self._choices)

    def _append(self, choice: UserChoice) -> None:
        self._choices.append(choice)

    def to_submission(self) -> ResultSubmission:
        return ResultSubmission(
            session_id=self.session_id,
            user_id=self.user_id,
            assignment_id=self.assignment_id,
            thought_record_id=self.thought_record_id,
            score=self.total_score,
            correct_answers=self.correct_answers,
            total_questions=len(self.scenarios),
            time_spent=self.time_spent,
            scenario_data=list(self.scenarios),
            user_choices=list(self._choices),
        )

    def __repr__(self) -> str:
        return (
            f"<PracticeSession {self.session_id} user={self.user_id} "
            f"{self.next_index}/{len(self.scenarios)}>"
        )


class PracticeSessionEngine:
    """Runs sessions and hands completed ones to the gamification gateway."""

    def __init__(self, gamification: GamificationGateway):
        self.gamification = gamification

    def start(
        self,
        scenarios: Sequence[PracticeScenario],
        user_id: int,
        assignment_id: Optional[int] = None,
        thought_record_id: Optional[int] = None,
    ) -> PracticeSession:
        session = PracticeSession(
            scenarios,
            user_id=user_id,
            assignment_id=assignment_id,
            thought_record_id=thought_record_id,
        )
        logger.info(f"Started practice session {session.session_id} with {len(scenarios)} scenarios")
        return session

    def select_option(
        self,
        session: PracticeSession,
        scenario_index: int,
        option_index: int,
        elapsed_ms: int,
    ) -> int:
        """
        Record the answer for the next scenario and return the running total.

        Raises ValidationError (leaving the session untouched) for an
        out-of-order index, an unknown option or a negative elapsed time.
        """
        if session.is_complete:
            raise ValidationError("All scenarios in this session have already been answered")

        if scenario_index != session.next_index:
            raise ValidationError(
                f"Scenario {scenario_index} answered out of order; "
                f"expected scenario {session.next_index}"
            )

        scenario = session.scenarios[scenario_index]
        if not 0 <= option_index < len(scenario.options):
            raise ValidationError(
                f"Option {option_index} does not exist for scenario {scenario_index}"
            )

        if elapsed_ms < 0:
            raise ValidationError("Elapsed time cannot be negative")

        is_correct = scenario.options[option_index].is_correct
        session._append(
            UserChoice(
                scenario_index=scenario_index,
                selected_option_index=option_index,
                is_correct=is_correct,
                time_spent=elapsed_ms,
                score=score_answer(is_correct, elapsed_ms),
            )
        )
        return session.total_score

    async def finalize(self, session: PracticeSession) -> PracticeSummary:
        """
        Score the completed session and apply it to the user's profile.

        Finalizing the same session again is safe: the gateway recognises the
        session id and reports the original updates without re-applying them.
        """
        if not session.is_complete:
            raise ValidationError(
                f"Session incomplete: {session.next_index} of "
                f"{len(session.scenarios)} scenarios answered"
            )

        submission = session.to_submission()
        game_updates = await self.gamification.apply_practice_result(
            session.user_id, submission
        )

        summary = PracticeSummary(
            total_score=submission.score,
            correct_answers=submission.correct_answers,
            accuracy=submission.correct_answers / submission.total_questions,
            game_updates=game_updates,
        )

        if summary.pending:
            logger.warning(f"Practice session {session.session_id} saved locally, submission pending")
        else:
            logger.info(
                f"Finalized practice session {session.session_id}: "
                f"score={summary.total_score} correct={summary.correct_answers}"
            )
        return summary
