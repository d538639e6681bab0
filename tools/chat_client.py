"""Streaming client for an OpenAI-compatible chat completions endpoint."""

import logging
from typing import AsyncIterator, Optional, Sequence

import httpx

from config.exceptions import (
    InvalidRequestError,
    MissingCredentialError,
    NetworkError,
    StreamParseError,
)
from config.settings import Settings
from tools.context_builder import PromptMessage
from tools.stream_parser import is_done_line, parse_stream_line

logger = logging.getLogger(__name__)


class StreamingChatClient:
    """Sends one chat request and yields the reply as text increments.

    The returned iterator is finite and cannot be restarted. Closing it
    early (``aclose()``, or cancelling the task consuming it) exits the
    HTTP streaming context, which releases the connection immediately.
    No retries happen here; retry policy belongs to the caller.
    """

    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or Settings()
        self._http_client = http_client
        self.total_calls = 0

    def build_request(self, payload: Sequence[PromptMessage], credential: Optional[str]) -> httpx.Request:
        """Validate inputs and construct the HTTP request.

        Raises:
            MissingCredentialError: If the credential is absent or blank.
            InvalidRequestError: If the endpoint or payload is malformed.
        """
        if credential is None or not credential.strip():
            raise MissingCredentialError(
                "OpenAI API key not configured. Please add your API key in settings."
            )
        if not payload:
            raise InvalidRequestError("Chat payload is empty")

        try:
            url = httpx.URL(self.settings.chat_api_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidRequestError(f"Invalid API URL: {e}", {"url": self.settings.chat_api_url}) from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidRequestError("Invalid API URL", {"url": self.settings.chat_api_url})

        body = {
            "model": self.settings.chat_model,
            "messages": [m.to_payload() for m in payload],
            "stream": True,
            "temperature": self.settings.chat_temperature,
        }
        headers = {
            "Authorization": f"Bearer {credential.strip()}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        return httpx.Request("POST", url, json=body, headers=headers)

    def send(self, payload: Sequence[PromptMessage], credential: Optional[str]) -> AsyncIterator[str]:
        """Start a chat exchange and return its increments.

        Validation happens before this returns, so credential and request
        errors surface at call time rather than on first iteration.

        Args:
            payload: Ordered role/content messages from ContextBuilder.
            credential: Provider API key.

        Returns:
            Async iterator of text fragments in emission order.

        Raises:
            MissingCredentialError: If no credential is configured.
            InvalidRequestError: If the request cannot be constructed.
        """
        request = self.build_request(payload, credential)
        self.total_calls += 1
        logger.debug(
            "Chat call: model=%s, messages=%d", self.settings.chat_model, len(payload),
        )
        return self._stream(request)

    async def _stream(self, request: httpx.Request) -> AsyncIterator[str]:
        owns_client = self._http_client is None
        client = self._http_client or httpx.AsyncClient(timeout=self.settings.request_timeout)
        increments = 0
        try:
            try:
                response = await client.send(request, stream=True)
            except httpx.HTTPError as e:
                raise NetworkError(f"Request failed: {e}") from e

            try:
                if not response.is_success:
                    await response.aread()
                    logger.warning(
                        "Chat API returned HTTP %d: %s",
                        response.status_code, response.text[:200],
                    )
                    raise NetworkError(
                        f"Chat API returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )

                async for line in response.aiter_lines():
                    if is_done_line(line):
                        break
                    content = parse_stream_line(line)
                    if content:
                        increments += 1
                        yield content
            except httpx.DecodingError as e:
                raise StreamParseError(f"Response stream could not be decoded: {e}") from e
            except httpx.HTTPError as e:
                raise NetworkError(f"Stream interrupted: {e}") from e
            finally:
                await response.aclose()
        finally:
            if owns_client:
                await client.aclose()
            logger.debug("Chat call finished: increments=%d", increments)

    def get_usage_summary(self) -> dict:
        """Return call count statistics."""
        return {"total_calls": self.total_calls}
