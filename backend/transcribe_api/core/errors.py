"""Exception hierarchy for the transcription workflow.

Components raise the most specific class they can detect; the HTTP layer only
distinguishes the three branches below the base class:

    TranscriptionServiceError
    ├── InputError            client's fault, rendered as 400
    ├── ProviderError         upload / job creation / polling failures, 500
    │   ├── UploadError
    │   ├── JobCreationError
    │   ├── TranscriptionFailedError
    │   └── TranscriptionTimeoutError
    └── PersistenceError      store read or write failure, 500
"""


class TranscriptionServiceError(Exception):
    """Base class for all workflow errors."""


class InputError(TranscriptionServiceError):
    """Request is missing required input (audio file, user id)."""


class ProviderError(TranscriptionServiceError):
    """The transcription provider could not produce a transcript."""


class UploadError(ProviderError):
    """Provider rejected the raw audio bytes or the upload call failed."""


class JobCreationError(ProviderError):
    """Provider did not accept the transcription job."""


class TranscriptionFailedError(ProviderError):
    """Provider reported the job as failed."""


class TranscriptionTimeoutError(ProviderError):
    """Job did not reach a terminal state within the poll ceiling."""

    def __init__(self, job_id: str, attempts: int):
        super().__init__(f"Transcript {job_id} not ready after {attempts} polls")
        self.job_id = job_id
        self.attempts = attempts


class PersistenceError(TranscriptionServiceError):
    """Transcript store is unavailable or rejected the operation."""
