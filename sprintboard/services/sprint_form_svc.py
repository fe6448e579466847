from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..domain import sprint_lifecycle
from ..domain.cancellation import CancellationToken
from ..domain.result import Result
from ..errors import DuplicateSubmissionRejected
from .sprint_svc import SprintService, sprint_payload
from .submission_guard import SubmissionGuard

logger = logging.getLogger(__name__)

REJECTED, INVALID, SAVED, FAILED = "rejected", "invalid", "saved", "failed"


@dataclass(frozen=True)
class FormSubmission:
    status: str
    errors: dict[str, str] = field(default_factory=dict)
    record: dict[str, Any] | None = None
    rejection: DuplicateSubmissionRejected | None = None


class SprintFormSession:
    """One open create/edit sprint dialog.

    submit: guard rules -> local validation -> one write. Validation failures
    leave the session usable; a successful save closes it. Closing cancels any
    call still in flight so its result is discarded.
    """

    def __init__(self, sprints: SprintService, guard: SubmissionGuard, sprint: Mapping[str, Any] | None = None):
        self.sprints = sprints
        self.guard = guard
        self.sprint = dict(sprint) if sprint else None
        self.session = guard.open()
        self.token = CancellationToken()
        self.errors: dict[str, str] = {}
        self.is_open = True

    @property
    def is_editing(self) -> bool:
        return bool(self.sprint and self.sprint.get("id") is not None)

    def _validation_payload(self, form: Mapping[str, Any]) -> dict[str, Any]:
        if not self.is_editing:
            return dict(form)
        # unchanged fields come from the stored sprint
        data = {**self.sprint, **form}
        data["id"] = self.sprint["id"]
        data["original_status"] = self.sprint.get("status")
        return data

    async def _save(self, form: Mapping[str, Any]) -> Result[dict]:
        payload = sprint_payload(form, default_status=not self.is_editing)
        if self.is_editing:
            return await self.sprints.writer.update_result(self.sprint["id"], payload, self.token)
        return await self.sprints.writer.create_result(payload, self.token)

    async def submit(self, form: Mapping[str, Any]) -> FormSubmission:
        self.errors = {}
        rejection = self.guard.check(self.session)
        if rejection is not None:
            self.session.attempt_count += 1
            logger.debug("sprint form submission prevented: %s", rejection.reason)
            return FormSubmission(REJECTED, rejection=rejection)

        errors = sprint_lifecycle.validate(self._validation_payload(form))
        if errors:
            self.errors = errors
            self.session.attempt_count = 0
            return FormSubmission(INVALID, errors=errors)

        outcome = await self.guard.submit(self.session, lambda: self._save(form))
        if not outcome.accepted:
            return FormSubmission(REJECTED, rejection=outcome.rejection)
        result: Result[dict] = outcome.value
        if outcome.succeeded:
            self.close()
            return FormSubmission(SAVED, record=result.value)
        if self.token.cancelled:
            return FormSubmission(FAILED)
        self.sprints.notifier.failure("Error", "There was a problem saving the sprint. Please try again.")
        return FormSubmission(FAILED)

    def close(self) -> None:
        if not self.is_open:
            return
        self.is_open = False
        self.token.cancel()
        self.guard.close(self.session)
