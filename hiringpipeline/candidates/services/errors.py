"""
Failures raised by the status lifecycle.
Malformed input is reported with django's ValidationError, like the rest of the app.
"""


class TransitionError(Exception):
    """Base class for status transition failures."""


class CandidateNotFound(TransitionError):
    def __init__(self, candidate_id) -> None:
        super().__init__(f"Candidate {candidate_id} not found")
        self.candidate_id = candidate_id


class ConcurrencyConflict(TransitionError):
    """
    The stored status no longer matches the status the caller expected.
    Retryable: re-read the candidate and decide again.
    """
    def __init__(self, candidate_id, expected_status: str, current_status=None) -> None:
        super().__init__(
            f"Candidate {candidate_id} is no longer in status '{expected_status}'"
        )
        self.candidate_id = candidate_id
        self.expected_status = expected_status
        self.current_status = current_status


class StorageFailure(TransitionError):
    """The candidate store could not complete the operation."""
