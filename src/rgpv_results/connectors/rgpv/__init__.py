"""RGPV result site connector.

This package implements one result fetch against the RGPV result site:
navigating the ASP.NET program selection, solving the CAPTCHA and submitting
the grading result form.
"""

# Interfaces
from .interfaces import (
    AttemptRecord,
    CaptchaSample,
    ChallengeContext,
    ConsensusResult,
    ErrorKind,
    IResultStore,
    RecordOutcome,
    StudentRecord,
    SubmissionResult,
    SubmissionStatus,
)

# Exceptions
from .exceptions import RGPVError, TransportError

# Implementation
from .http import create_http_session
from .pipeline import ResultPipeline
from .submitter import FormSubmitter, classify_response, extract_result_data
from .workflow import SessionWorkflow

__all__ = [
    # Interfaces
    "AttemptRecord",
    "CaptchaSample",
    "ChallengeContext",
    "ConsensusResult",
    "ErrorKind",
    "IResultStore",
    "RecordOutcome",
    "StudentRecord",
    "SubmissionResult",
    "SubmissionStatus",
    # Exceptions
    "RGPVError",
    "TransportError",
    # Implementation
    "create_http_session",
    "ResultPipeline",
    "FormSubmitter",
    "classify_response",
    "extract_result_data",
    "SessionWorkflow",
]
