"""Error taxonomy for the relay.

Validation errors (InvalidUrl, AccessDenied) are reported back to the client
that asked. Everything raised further downstream is logged by the caller and
otherwise dropped.
"""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base class for errors raised by the relay services."""


class ConfigurationError(RelayError):
    """Raised when settings name an unknown strategy or are otherwise unusable."""


class InvalidUrl(RelayError):
    """Raised when a destination URL does not match the document URL grammar."""


class AccessDenied(RelayError):
    """Raised when the destination block cannot be read, for any reason."""


class RemoteError(RelayError):
    """Raised when a remote service call fails or returns an unusable payload."""


class UploadError(RemoteError):
    """Raised when an audio upload to the provider fails."""


class SubmitError(RemoteError):
    """Raised when the provider rejects a transcription job."""


class PollTimeout(RelayError):
    """Raised when a job is still pending after the last allowed poll."""

    def __init__(self, job_id: str, attempts: int) -> None:
        super().__init__(f"Job {job_id} still pending after {attempts} polls")
        self.job_id = job_id
        self.attempts = attempts


class StreamError(RelayError):
    """Raised when the live provider socket fails or closes."""
