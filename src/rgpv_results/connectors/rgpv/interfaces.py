"""Interfaces for the RGPV result connector.

This module defines the data structures passed between the steps of one
result fetch (session workflow, CAPTCHA consensus, form submission) and the
persistence interface used by the batch layer. Dataclasses and enums keep the
hand-offs between steps explicit and easy to assert on in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class SubmissionStatus(Enum):
    """Classification of the page returned by a result form submission.

    The order in which these are checked matters; see
    ``submitter.classify_response``.
    """
    SUCCESS = "success"  # Result page with grades
    INVALID_CAPTCHA = "invalid_captcha"  # Wrong CAPTCHA text, retryable
    RECORD_NOT_FOUND = "record_not_found"  # Roll number unknown for the semester
    SERVICE_UNAVAILABLE = "service_unavailable"  # Site in maintenance, hard stop
    UNRECOGNIZED = "unrecognized"  # None of the known markers matched


class ErrorKind(Enum):
    """Why an attempt at fetching a record failed."""
    TRANSPORT = "transport"
    WORKFLOW = "workflow"
    CAPTCHA = "captcha"
    INVALID_CAPTCHA = "invalid_captcha"
    RECORD_NOT_FOUND = "record_not_found"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNRECOGNIZED = "unrecognized"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ChallengeContext:
    """State needed to submit the result form once.

    Produced by the session workflow for a single attempt and consumed by a
    single submission; never reused across attempts.

    Attributes:
        session_id: Value of the ``ASP.NET_SessionId`` cookie (may be empty).
        hidden_fields: Every named form input on the results page, including
            ``__VIEWSTATE``, ``__VIEWSTATEGENERATOR`` and ``__EVENTVALIDATION``.
        captcha_image_url: Absolute URL of the CAPTCHA image.
        created_at: When the context was captured.
    """
    session_id: str
    hidden_fields: Dict[str, str]
    captcha_image_url: str
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class CaptchaSample:
    """One OCR reading of a CAPTCHA image. Each accepted sample is one vote."""
    raw_text: str
    normalized: str


@dataclass
class ConsensusResult:
    """Outcome of a consensus run.

    Attributes:
        text: Winning normalized string.
        votes: Number of samples that read ``text``.
        samples_taken: Images fetched, including rejected ones.
        accepted_samples: Samples that passed the alphabet and length filters.
    """
    text: str
    votes: int
    samples_taken: int
    accepted_samples: int


@dataclass
class SubmissionResult:
    """Classified response to a result form submission."""
    status: SubmissionStatus
    data: Optional[Dict[str, Any]] = None
    message: str = ""


@dataclass
class AttemptRecord:
    """One failed attempt at fetching a record.

    Attributes:
        attempt: 1-based attempt number.
        step: ``workflow``, ``captcha`` or ``submit``.
        error_kind: Classified failure.
        message: Human-readable detail.
    """
    attempt: int
    step: str
    error_kind: ErrorKind
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt,
            "step": self.step,
            "error_kind": self.error_kind.value,
            "message": self.message,
        }


@dataclass
class RecordOutcome:
    """Final result of fetching one roll number.

    Attributes:
        roll_number: Record identifier.
        semester: Semester requested.
        success: Whether a result payload was obtained.
        data: Result payload, or None.
        attempts: Attempts actually run (0 for cache hits and skipped records).
        errors: One entry per failed attempt.
        service_unavailable: The site reported maintenance; no more retries.
        from_cache: The payload came from the completion cache.
        message: Free-form summary.
    """
    roll_number: str
    semester: str
    success: bool
    data: Optional[Dict[str, Any]] = None
    attempts: int = 0
    errors: List[AttemptRecord] = field(default_factory=list)
    service_unavailable: bool = False
    from_cache: bool = False
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly dictionary."""
        result = asdict(self)
        result["errors"] = [error.to_dict() for error in self.errors]
        return result


@dataclass
class StudentRecord:
    """One work item for the batch orchestrator."""
    roll_number: str
    semester: str
    force_reprocess: bool = False


class IResultStore(ABC):
    """Interface for result persistence.

    Defines the contract for storing fetched result payloads keyed by roll
    number. Implementations can use different backends (JSON files, memory)
    while the batch layer stays the same.
    """

    @abstractmethod
    async def list_completed_identifiers(self) -> Set[str]:
        """List roll numbers that already have a stored result.

        Returns:
            Set of roll numbers.
        """
        pass

    @abstractmethod
    async def read_result(self, roll_number: str) -> Optional[Dict[str, Any]]:
        """Read the stored payload for a roll number.

        Args:
            roll_number: Record identifier.

        Returns:
            The payload if stored, None otherwise.
        """
        pass

    @abstractmethod
    async def write_result(self, roll_number: str, payload: Dict[str, Any]) -> bool:
        """Store the payload for a roll number, replacing any previous one.

        Args:
            roll_number: Record identifier.
            payload: Result payload.

        Returns:
            True if the payload was stored, False otherwise.
        """
        pass
