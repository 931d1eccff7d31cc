"""
Scenario Provider - supplies the scenario list for a practice session.

Either from a therapist assignment (pre-generated) or generated on demand
from one of the client's thought records.
"""

import json
import logging
from typing import List, Optional

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError
from app.models.practice import ReframeAssignment, ThoughtRecord
from app.schemas.practice import PracticeSet

logger = logging.getLogger(__name__)

DEFAULT_SCENARIO_COUNT = 3


class ScenarioProvider:
    """Loads or generates PracticeSets."""

    SYSTEM_PROMPT = """You are a CBT therapist's assistant building "Reframe Coach" exercises.
    Given a client's automatic thought, the cognitive distortions it shows and the core emotion,
    write short realistic scenarios with the same distortion pattern. Each scenario offers
    3-4 alternative thoughts; exactly one is a balanced, helpful reframe.

    Respond with JSON only:
    {"scenarios": [{"scenario": str, "cognitiveDistortion": str, "emotionCategory": str,
      "options": [{"text": str, "isCorrect": bool, "explanation": str}]}],
     "thoughtContent": str, "generalFeedback": str}
    """

    def __init__(self, db: AsyncSession, openai_client=None):
        self.db = db
        self.openai_client = openai_client
        if self.openai_client is None and settings.openai_api_key:
            from openai import AsyncOpenAI
            self.openai_client = AsyncOpenAI(api_key=settings.openai_api_key)

    async def from_assignment(self, assignment_id: int, user_id: int) -> PracticeSet:
        assignment = await self.db.get(ReframeAssignment, assignment_id)
        if assignment is None or user_id not in (assignment.assigned_to, assignment.assigned_by):
            raise NotFoundError("Practice assignment not found")

        practice_set = PracticeSet.model_validate(assignment.reframe_data or {})
        if not practice_set.scenarios:
            raise NotFoundError("No practice scenarios available for this assignment")
        return practice_set

    async def get_thought_record(self, thought_record_id: int, user_id: int) -> ThoughtRecord:
        result = await self.db.execute(
            select(ThoughtRecord)
            .where(ThoughtRecord.id == thought_record_id)
            .where(ThoughtRecord.user_id == user_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Thought record not found")
        return record

    async def from_thought_record(
        self,
        thought_record_id: int,
        user_id: int,
        custom_instructions: Optional[str] = None,
        count: int = DEFAULT_SCENARIO_COUNT,
    ) -> PracticeSet:
        record = await self.get_thought_record(thought_record_id, user_id)
        return await self.generate(record, custom_instructions, count)

    async def generate(
        self,
        record: ThoughtRecord,
        custom_instructions: Optional[str] = None,
        count: int = DEFAULT_SCENARIO_COUNT,
    ) -> PracticeSet:
        if not self.openai_client:
            logger.warning("OpenAI client not initialized, cannot generate scenarios.")
            raise NotFoundError("No practice scenarios available for this thought record")

        distortions: List[str] = list(record.cognitive_distortions or []) or ["unknown"]
        prompt = f"""
        Automatic thought: {record.automatic_thoughts}
        Cognitive distortions: {", ".join(distortions)}
        Core emotion: {record.emotion_category or "unknown"}
        Evidence for the thought: {record.evidence_for or "Not specified"}
        Evidence against the thought: {record.evidence_against or "Not specified"}
        Alternative perspective: {record.alternative_perspective or "Not specified"}
        Number of scenarios: {count}
        {custom_instructions or ""}
        """

        try:
            response = await self.openai_client.chat.completions.create(
                model=settings.openai_model,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.7,
            )
            content = response.choices[0].message.content
            practice_set = PracticeSet.model_validate(json.loads(content))
        except (json.JSONDecodeError, SchemaValidationError, TypeError) as e:
            logger.error(f"Scenario generation returned unusable output for thought {record.id}: {e}")
            raise NotFoundError("No practice scenarios available for this thought record") from e

        if not practice_set.scenarios:
            raise NotFoundError("No practice scenarios available for this thought record")

        logger.info(f"Generated {len(practice_set.scenarios)} scenarios for thought record {record.id}")
        return practice_set
