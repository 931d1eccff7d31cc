"""
Reframe Coach records.

Scenario sets arrive as JSON (from an assignment or from the AI generator)
and results come back from the client as JSON; both are validated here so
the engine and the gamification store work with typed records only.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PracticeOption(CamelModel):
    text: str
    is_correct: bool
    explanation: str = ""


class PracticeScenario(CamelModel):
    """One multiple-choice "reframe this thought" item."""

    scenario: str
    options: List[PracticeOption] = Field(min_length=2)
    cognitive_distortion: str = "unknown"
    emotion_category: str = "unknown"

    @field_validator("options")
    @classmethod
    def _exactly_one_correct(cls, value: List[PracticeOption]) -> List[PracticeOption]:
        correct = sum(1 for option in value if option.is_correct)
        if correct != 1:
            raise ValueError(f"scenario needs exactly one correct option, got {correct}")
        return value


class PracticeSet(CamelModel):
    """Scenario list plus the framing the generator returns with it."""

    scenarios: List[PracticeScenario] = Field(default_factory=list)
    thought_content: str = ""
    general_feedback: str = ""


class UserChoice(CamelModel):
    """One answered scenario. Appended once, never changed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    scenario_index: int = Field(ge=0)
    selected_option_index: int = Field(ge=0)
    is_correct: bool
    # milliseconds
    time_spent: int = Field(ge=0)
    score: int = Field(default=0, ge=0)


class ResultSubmission(CamelModel):
    """Body of POST /api/reframe-coach/results."""

    # also the outbox file name
    session_id: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    user_id: Optional[int] = None
    assignment_id: Optional[int] = None
    thought_record_id: Optional[int] = None
    score: int = Field(ge=0)
    correct_answers: int = Field(ge=0)
    total_questions: int = Field(ge=1)
    # milliseconds, summed over all answers
    time_spent: int = Field(default=0, ge=0)
    scenario_data: List[PracticeScenario] = Field(default_factory=list)
    user_choices: List[UserChoice] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_counts(self) -> "ResultSubmission":
        if self.correct_answers > self.total_questions:
            raise ValueError("correctAnswers cannot exceed totalQuestions")
        return self

    @property
    def is_perfect(self) -> bool:
        return self.correct_answers == self.total_questions


class GameUpdates(CamelModel):
    """What changed on the gamification profile after one session."""

    new_total_score: int
    new_level: int
    prev_level: int
    new_streak: int
    new_achievements: List[str] = Field(default_factory=list)
    leveled_up: bool = False
    duplicate: bool = False


class PracticeSummary(CamelModel):
    total_score: int
    correct_answers: int
    accuracy: float
    game_updates: Optional[GameUpdates] = None

    @property
    def pending(self) -> bool:
        """Result is stored locally and still waiting for the server."""
        return self.game_updates is None


class CreateAssignmentRequest(CamelModel):
    thought_record_id: int
    assigned_to: int
    is_priority: bool = False
    notes: str = ""
    custom_instructions: Optional[str] = None
