"""AssemblyAI transcription provider."""

import asyncio
from typing import Any

import httpx

from transcribe_api.config import settings
from transcribe_api.core.ai.models import TranscriptState, TranscriptStatus
from transcribe_api.core.errors import (
    JobCreationError,
    ProviderError,
    TranscriptionFailedError,
    TranscriptionTimeoutError,
    UploadError,
)
from transcribe_api.core.logging import get_logger
from transcribe_api.core.storage.temp_files import TempAudioFile

logger = get_logger(__name__)


class AssemblyAIClient:
    """
    Client for AssemblyAI's asynchronous transcription API.

    Workflow:
    - upload raw audio bytes, receive a provider-hosted upload URL
    - create a transcript job for that URL
    - poll the job until it is completed, errors, or the attempt ceiling is hit

    One instance is shared by all requests; the underlying httpx client
    pools connections and is safe for concurrent use.
    """

    DEFAULT_MAX_ATTEMPTS = 20
    DEFAULT_POLL_INTERVAL = 5.0  # seconds

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.assemblyai_base_url,
            headers={"authorization": api_key if api_key is not None else settings.assemblyai_api_key},
            timeout=timeout or settings.assemblyai_timeout_seconds,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "assemblyai"

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and return its JSON body.

        Raises:
            httpx.HTTPError: On network failure or non-2xx status
            ValueError: If the body is not a JSON object
        """
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Expected JSON object from {url}")
        return payload

    async def submit(self, audio: TempAudioFile) -> str:
        """
        Upload raw audio bytes.

        Args:
            audio: Temp file holding the uploaded audio

        Returns:
            Provider upload URL to reference when creating the job

        Raises:
            UploadError: Provider rejected the bytes or the call failed
        """
        try:
            payload = await self._request(
                "POST",
                "/upload",
                content=audio.read_bytes(),
                headers={"content-type": "application/octet-stream"},
            )
        except (httpx.HTTPError, ValueError, OSError) as e:
            raise UploadError(f"Audio upload failed: {e}") from e

        upload_url = payload.get("upload_url")
        if not upload_url:
            raise UploadError("Upload response did not include upload_url")

        logger.info("provider_audio_uploaded", provider=self.name)
        return upload_url

    async def create_job(self, upload_url: str) -> str:
        """
        Create a transcript job for previously uploaded audio.

        Returns:
            Provider job id

        Raises:
            JobCreationError: Provider did not accept the job
        """
        try:
            payload = await self._request("POST", "/transcript", json={"audio_url": upload_url})
        except (httpx.HTTPError, ValueError) as e:
            raise JobCreationError(f"Transcript job creation failed: {e}") from e

        job_id = payload.get("id")
        if not job_id:
            raise JobCreationError("Transcript response did not include id")

        logger.info("provider_job_created", provider=self.name, job_id=job_id)
        return str(job_id)

    async def get_status(self, job_id: str) -> TranscriptStatus:
        """
        Fetch the current status of a transcript job.

        Raises:
            ProviderError: Poll request failed or returned an unknown status
        """
        try:
            payload = await self._request("GET", f"/transcript/{job_id}")
            return TranscriptStatus.from_payload(job_id, payload)
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Polling transcript {job_id} failed: {e}") from e

    async def await_result(
        self,
        job_id: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> str:
        """
        Poll a job until it reaches a terminal state.

        Args:
            job_id: Provider job id
            max_attempts: Poll ceiling
            poll_interval: Seconds to sleep between polls

        Returns:
            Transcript text

        Raises:
            TranscriptionFailedError: Provider reported ``error`` or an empty transcript
            TranscriptionTimeoutError: No terminal state after ``max_attempts`` polls
            ProviderError: A poll request failed
        """
        for attempt in range(1, max_attempts + 1):
            status = await self.get_status(job_id)
            logger.debug(
                "provider_job_polled",
                job_id=job_id,
                attempt=attempt,
                state=status.state.value,
            )

            if not status.state.is_terminal:
                if attempt < max_attempts:
                    await asyncio.sleep(poll_interval)
                continue

            if status.state is TranscriptState.ERROR:
                raise TranscriptionFailedError(
                    f"Transcript {job_id} failed: {status.error or 'unknown error'}"
                )
            if not status.text:
                raise TranscriptionFailedError(f"Transcript {job_id} completed without text")
            return status.text

        raise TranscriptionTimeoutError(job_id, max_attempts)

    async def aclose(self) -> None:
        await self._client.aclose()


# Singleton instance
_client: AssemblyAIClient | None = None


def get_assemblyai_client() -> AssemblyAIClient:
    """Get singleton AssemblyAI client."""
    global _client
    if _client is None:
        _client = AssemblyAIClient()
    return _client


async def close_assemblyai_client() -> None:
    """Close the singleton's connection pool, if one was created."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
