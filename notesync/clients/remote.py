"""
Remote Note Service Client.

Async HTTP client for the paginated notes REST endpoint. Every call goes
through the resilience stack: circuit breaker → retry → timeout.

Failures surface as two exception types:
    RemoteUnavailableError - transport failure, timeout, open circuit
    RemoteRejectedError    - any unexpected HTTP status or unreadable body

A 404 on delete raises NotFoundError so the caller can treat it as an
already-deleted note.
"""

from typing import Any

import aiobreaker
import httpx
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from notesync.core.config_schema import RemoteSchema
from notesync.core.exceptions import (
    NotFoundError,
    RemoteRejectedError,
    RemoteUnavailableError,
)
from notesync.core.logging import get_logger, log_with_source
from notesync.core.resilience import create_circuit_breaker, log_retry
from notesync.schemas.note import NotePage, NoteRequest, RemoteNote

logger = get_logger(__name__)

# A create whose request may have reached the server must not be resent.
_NON_IDEMPOTENT_METHODS = frozenset({"POST"})
_CONNECT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def parse_error_detail(response: httpx.Response) -> str | None:
    """
    Extract a human-readable message from a DRF-style error body.

    Understands a top-level "detail" string and an "errors" list whose
    items carry their own "detail".
    """
    try:
        body = response.json()
    except ValueError:
        return response.text or None

    if not isinstance(body, dict):
        return None
    if "detail" in body:
        return str(body["detail"])
    errors = body.get("errors")
    if isinstance(errors, list):
        details = [
            str(item.get("detail"))
            for item in errors
            if isinstance(item, dict) and item.get("detail") is not None
        ]
        return "\n- ".join(details) if details else None
    return None


def next_page_number(next_url: str | None) -> int | None:
    """
    Extract the page number from a pagination "next" link.

    Returns:
        The page number, or None when the link is absent or has no
        usable page parameter.
    """
    if not next_url:
        return None
    try:
        value = httpx.URL(next_url).params.get("page")
    except httpx.InvalidURL:
        return None
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class RemoteNoteClient:
    """
    HTTP client for the remote note service.

    Usage:
        client = RemoteNoteClient.from_config()
        page = await client.list_notes(page=1)
        note = await client.create_note(NoteRequest(title="t", description="d"))
        await client.close()
    """

    def __init__(
        self,
        config: RemoteSchema,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Remote service settings (endpoint, timeout, retry, breaker)
            token: Bearer token sent with every request, if any
            transport: Optional httpx transport, used by tests
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.notes_path = "/" + config.notes_path.strip("/") + "/"
        self.timeout = float(config.timeout_seconds)
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._breaker = create_circuit_breaker(
            "remote_notes",
            fail_max=config.circuit_breaker.fail_max,
            timeout_duration=config.circuit_breaker.timeout_duration,
            exclude=[RemoteRejectedError, NotFoundError],
        )

    @classmethod
    def from_config(cls) -> "RemoteNoteClient":
        """Build a client from remote.yaml and the REMOTE_API_TOKEN secret."""
        from notesync.core.config import get_app_config, get_settings

        return cls(
            get_app_config().remote,
            token=get_settings().remote_api_token,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "RemoteNoteClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send one request, retrying transport failures.

        Non-idempotent requests are retried only when the connection was
        never established.
        """
        client = await self._get_client()
        retry_config = self.config.retry
        retryable = _CONNECT_ERRORS if method in _NON_IDEMPOTENT_METHODS else httpx.TransportError

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(retry_config.max_attempts),
            wait=wait_exponential(
                multiplier=retry_config.backoff_multiplier,
                max=retry_config.backoff_max,
            ),
            retry=retry_if_exception_type(retryable),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                return await client.request(method, path, **kwargs)
        raise RemoteUnavailableError("Retry loop exited without a response")

    async def request(
        self,
        method: str,
        path: str,
        expected: tuple[int, ...] = (200,),
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make a request to the remote service.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Path relative to the base URL
            expected: Status codes treated as success
            **kwargs: Additional arguments for httpx

        Returns:
            httpx.Response with an expected status

        Raises:
            RemoteUnavailableError: Transport failure, timeout, open circuit
            NotFoundError: 404 response
            RemoteRejectedError: Any other unexpected status
        """
        log_with_source(logger, "remote", "debug", "Remote request", method=method, path=path)

        try:
            response = await self._breaker.call_async(self._send, method, path, **kwargs)
        except aiobreaker.CircuitBreakerError as e:
            raise RemoteUnavailableError(f"Circuit open for remote note service: {e}") from e
        except httpx.TimeoutException as e:
            log_with_source(
                logger, "remote", "warning", "Remote request timed out",
                method=method, path=path, error=str(e),
            )
            raise RemoteUnavailableError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            log_with_source(
                logger, "remote", "warning", "Remote request failed",
                method=method, path=path, error=str(e),
            )
            raise RemoteUnavailableError(f"Transport error: {method} {path}: {e}") from e

        log_with_source(
            logger, "remote", "debug", "Remote response",
            method=method, path=path, status_code=response.status_code,
        )

        if response.status_code in expected:
            return response
        if response.status_code == 404:
            raise NotFoundError(f"Remote resource not found: {path}")

        detail = parse_error_detail(response)
        raise RemoteRejectedError(
            f"Remote service rejected {method} {path} with {response.status_code}",
            status_code=response.status_code,
            detail=detail,
        )

    def _note_path(self, note_id: int) -> str:
        return f"{self.notes_path}{note_id}/"

    @staticmethod
    def _parse(model: type, response: httpx.Response) -> Any:
        try:
            return model.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise RemoteRejectedError(
                f"Unreadable response body from {response.request.method} {response.request.url.path}",
                status_code=response.status_code,
                detail=str(e),
            ) from e

    async def create_note(self, data: NoteRequest) -> RemoteNote:
        """Create a note. Returns the server representation with its new id."""
        response = await self.request(
            "POST", self.notes_path, expected=(200, 201), json=data.model_dump(),
        )
        return self._parse(RemoteNote, response)

    async def update_note(self, note_id: int, data: NoteRequest) -> RemoteNote:
        """Replace a note's title and description."""
        response = await self.request(
            "PUT", self._note_path(note_id), expected=(200,), json=data.model_dump(),
        )
        return self._parse(RemoteNote, response)

    async def delete_note(self, note_id: int) -> None:
        """
        Delete a note.

        Raises:
            NotFoundError: The note does not exist on the server
        """
        await self.request("DELETE", self._note_path(note_id), expected=(200, 202, 204))

    async def list_notes(self, page: int = 1, page_size: int | None = None) -> NotePage:
        """Fetch one page of the note collection."""
        params = {"page": page, "page_size": page_size or self.config.page_size}
        response = await self.request("GET", self.notes_path, expected=(200,), params=params)
        return self._parse(NotePage, response)
