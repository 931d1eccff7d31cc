"""
Results Client - submits finished practice sessions to the results API.

Every submission is written to a file-backed outbox before the first
attempt and only removed after the server accepts it, so a session that
could not be delivered is never lost. Network errors, 5xx, 409 (the server
lost its profile compare-and-swap) and 429 are retried with exponential
backoff; any other 4xx is final.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import httpx

from app.config import settings
from app.exceptions import NotFoundError, TransientDeliveryError, ValidationError
from app.schemas.practice import GameUpdates, ResultSubmission

logger = logging.getLogger(__name__)

RESULTS_PATH = "/api/reframe-coach/results"
RETRYABLE_CLIENT_STATUSES = (409, 429)


class Outbox:
    """One JSON file per pending session, named by session id."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or settings.results_outbox_dir)

    def _path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def put(self, submission: ResultSubmission) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(submission.session_id)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(submission.model_dump_json(by_alias=True), encoding="utf-8")
        os.replace(tmp, path)
        return path

    def remove(self, session_id: str) -> None:
        self._path(session_id).unlink(missing_ok=True)

    def contains(self, session_id: str) -> bool:
        return self._path(session_id).exists()

    def pending(self) -> List[ResultSubmission]:
        if not self.directory.exists():
            return []

        submissions = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                submissions.append(ResultSubmission.model_validate_json(path.read_text(encoding="utf-8")))
            except ValueError as e:
                logger.error(f"Unreadable outbox entry {path.name}: {e}")
        return submissions


class ResultsClient:
    """
    HTTP side of the gamification gateway.

    apply_practice_result returns the server's GameUpdates, or None when
    the result stays queued in the outbox for a later replay().
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        outbox: Optional[Outbox] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = (base_url or settings.results_api_url).rstrip("/")
        self.outbox = outbox or Outbox()
        self.max_attempts = max_attempts or settings.results_max_attempts
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.results_backoff_seconds
        )
        self._transport = transport
        self._sleep = sleep

    async def apply_practice_result(
        self, user_id: int, submission: ResultSubmission
    ) -> Optional[GameUpdates]:
        if submission.user_id is None:
            submission = submission.model_copy(update={"user_id": user_id})

        self.outbox.put(submission)
        return await self._deliver(submission)

    async def replay(self) -> int:
        """Re-submit everything still in the outbox. Returns how many were accepted."""
        delivered = 0
        for submission in self.outbox.pending():
            try:
                if await self._deliver(submission) is not None:
                    delivered += 1
            except (ValidationError, NotFoundError) as e:
                logger.error(f"Dropping rejected practice result {submission.session_id}: {e.message}")
        logger.info(f"Outbox replay delivered {delivered} practice results")
        return delivered

    async def _deliver(self, submission: ResultSubmission) -> Optional[GameUpdates]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                updates = await self._post(submission)
                self.outbox.remove(submission.session_id)
                return updates
            except TransientDeliveryError as e:
                logger.warning(
                    f"Submitting practice result {submission.session_id} failed "
                    f"(attempt {attempt}/{self.max_attempts}): {e.message}"
                )
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))
            except (ValidationError, NotFoundError):
                self.outbox.remove(submission.session_id)
                raise

        logger.warning(f"Practice result {submission.session_id} kept in outbox for later delivery")
        return None

    async def _post(self, submission: ResultSubmission) -> GameUpdates:
        headers = {"X-User-Id": str(submission.user_id)}
        payload = submission.model_dump(mode="json", by_alias=True)

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=30.0, transport=self._transport
            ) as client:
                response = await client.post(RESULTS_PATH, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise TransientDeliveryError(f"Results API timeout: {e}") from e
        except httpx.TransportError as e:
            raise TransientDeliveryError(f"Results API transport error: {e}") from e

        if response.status_code >= 500 or response.status_code in RETRYABLE_CLIENT_STATUSES:
            raise TransientDeliveryError(
                f"Results API HTTP error: {response.status_code}",
                status=response.status_code,
            )
        if response.status_code == 404:
            raise NotFoundError(_error_message(response))
        if response.status_code >= 400:
            raise ValidationError(_error_message(response))

        return GameUpdates.model_validate(response.json()["gameUpdates"])


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message") or response.text
    except json.JSONDecodeError:
        return response.text
