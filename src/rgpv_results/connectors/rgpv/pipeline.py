"""Single-record pipeline: workflow, CAPTCHA consensus, submission, with retries."""

import asyncio
from typing import TYPE_CHECKING, Optional

import aiohttp

from ...config.logger import logger
from .exceptions import TransportError
from .interfaces import (
    AttemptRecord,
    ErrorKind,
    RecordOutcome,
    SubmissionStatus,
)
from .submitter import FormSubmitter
from .workflow import SessionWorkflow

if TYPE_CHECKING:
    from ...captcha.consensus import ConsensusCaptchaSolver

_RETRYABLE_STATUSES = {
    SubmissionStatus.INVALID_CAPTCHA: ErrorKind.INVALID_CAPTCHA,
    SubmissionStatus.RECORD_NOT_FOUND: ErrorKind.RECORD_NOT_FOUND,
    SubmissionStatus.UNRECOGNIZED: ErrorKind.UNRECOGNIZED,
}


class ResultPipeline:
    """Fetch one result, retrying failed attempts from a fresh session.

    Each attempt runs the session workflow, solves the CAPTCHA by consensus and
    submits the form. Attempts never share a session or a CAPTCHA. A response
    saying the site is under maintenance ends the record immediately.
    """

    def __init__(
        self,
        workflow: SessionWorkflow,
        solver: "ConsensusCaptchaSolver",
        submitter: FormSubmitter,
        max_retries: int = 3,
        max_samples: int = 7,
        early_stop_votes: int = 3,
    ):
        """Initialize the pipeline.

        Args:
            workflow: Session workflow producing one context per attempt.
            solver: Consensus CAPTCHA solver.
            submitter: Result form submitter.
            max_retries: Maximum attempts per record.
            max_samples: CAPTCHA samples per consensus run.
            early_stop_votes: Votes that end a consensus run early.
        """
        self.workflow = workflow
        self.solver = solver
        self.submitter = submitter
        self.max_retries = max_retries
        self.max_samples = max_samples
        self.early_stop_votes = early_stop_votes
        self.logger = logger.bind(component="result_pipeline")

    async def _attempt(
        self,
        outcome: RecordOutcome,
        attempt: int,
    ) -> Optional[AttemptRecord]:
        """Run one attempt, updating ``outcome`` on a terminal result.

        Returns:
            An AttemptRecord if the attempt failed, None if it was terminal.
        """
        step = "workflow"
        try:
            context = await self.workflow.establish()
            if context is None:
                return AttemptRecord(
                    attempt, step, ErrorKind.WORKFLOW,
                    "Result form with CAPTCHA not reached",
                )

            step = "captcha"
            consensus = await self.solver.solve(
                lambda: self.workflow.fetch_captcha_image(context),
                max_samples=self.max_samples,
                early_stop_votes=self.early_stop_votes,
            )
            if consensus is None:
                return AttemptRecord(
                    attempt, step, ErrorKind.CAPTCHA,
                    "No CAPTCHA reading passed the filters",
                )

            step = "submit"
            self.logger.debug(
                "pipeline_submitting",
                roll_number=outcome.roll_number,
                attempt=attempt,
                captcha=consensus.text,
                votes=consensus.votes,
            )
            submission = await self.submitter.submit(
                outcome.roll_number,
                outcome.semester,
                context,
                consensus.text,
            )
        except (TransportError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            return AttemptRecord(attempt, step, ErrorKind.TRANSPORT, str(e))

        if submission.status == SubmissionStatus.SUCCESS:
            outcome.success = True
            outcome.data = submission.data
            outcome.message = submission.message
            return None

        if submission.status == SubmissionStatus.SERVICE_UNAVAILABLE:
            outcome.service_unavailable = True
            outcome.message = submission.message
            outcome.errors.append(AttemptRecord(
                attempt, step, ErrorKind.SERVICE_UNAVAILABLE, submission.message,
            ))
            return None

        return AttemptRecord(
            attempt, step, _RETRYABLE_STATUSES[submission.status], submission.message,
        )

    async def fetch(self, roll_number: str, semester: str) -> RecordOutcome:
        """Fetch the result of one roll number.

        Args:
            roll_number: Roll number to look up.
            semester: Semester to look up.

        Returns:
            RecordOutcome describing success, the hard stop, or every failed
            attempt.
        """
        outcome = RecordOutcome(roll_number=roll_number, semester=semester, success=False)
        log = self.logger.bind(roll_number=roll_number, semester=semester)

        for attempt in range(1, self.max_retries + 1):
            outcome.attempts = attempt
            failure = await self._attempt(outcome, attempt)

            if failure is None:
                if outcome.success:
                    log.info("pipeline_record_fetched", attempts=attempt)
                else:
                    log.warning("pipeline_service_unavailable", attempts=attempt)
                return outcome

            outcome.errors.append(failure)
            log.info(
                "pipeline_attempt_failed",
                attempt=attempt,
                step=failure.step,
                error_kind=failure.error_kind.value,
                message=failure.message,
            )

        last = outcome.errors[-1]
        outcome.message = f"Failed after {outcome.attempts} attempts: {last.message}"
        log.warning("pipeline_record_failed", attempts=outcome.attempts)
        return outcome
