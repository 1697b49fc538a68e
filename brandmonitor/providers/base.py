"""
AI Provider Client Base

Common interface for every AI backend queried by the analysis:
- ProviderClient: abstract async query(prompt_text, timeout)
- HTTPProviderClient: httpx-based implementation shared by the
  REST providers (OpenAI, Gemini, Perplexity)

Provider calls are single-shot: a failure is reported to the caller
as ProviderError / ProviderTimeout and never retried here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..errors import ProviderError, ProviderTimeout
from ..models import ProviderIdentity

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a helpful assistant answering questions from people researching "
    "companies, products and services. Name specific companies when relevant, "
    "rank them when asked, and explain briefly why each one is included."
)


@dataclass
class ProviderReply:
    """Text returned by a provider for one prompt."""
    text: str
    model: str = ""
    tokens_used: int = 0


class ProviderClient(ABC):
    """Async client for one AI provider."""

    provider_id: str = "unknown"
    display_name: str = "Unknown"

    def __init__(self, model: str):
        self.model = model

    @property
    def identity(self) -> ProviderIdentity:
        return ProviderIdentity(
            id=self.provider_id,
            display_name=self.display_name,
            model=self.model,
        )

    @abstractmethod
    async def query(self, prompt_text: str, timeout: float) -> ProviderReply:
        """
        Send one prompt to the provider.

        Args:
            prompt_text: The user prompt
            timeout: Deadline for the call in seconds

        Returns:
            ProviderReply with the answer text

        Raises:
            ProviderTimeout: The call exceeded its deadline
            ProviderError: Any other failure
        """

    async def close(self):
        """Release client resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class HTTPProviderClient(ProviderClient):
    """
    Provider client for JSON-over-HTTP APIs.

    Subclasses set BASE_URL, build the request payload and parse the reply.
    """

    BASE_URL = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize provider client.

        Args:
            api_key: Provider API key
            model: Model name
            timeout: Default request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(model)
        self.api_key = api_key

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers=self._headers(),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded reply."""
        if self._closed:
            raise ProviderError("Client has been closed", provider_id=self.provider_id)

        kwargs: Dict[str, Any] = {"json": payload}
        if timeout is not None:
            kwargs["timeout"] = timeout
        if params:
            kwargs["params"] = params

        try:
            response = await self._client.post(path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(
                f"Request timed out: {e}", provider_id=self.provider_id
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"Request failed: {e}", provider_id=self.provider_id
            ) from e

        if response.status_code >= 400:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {"error": response.text}
            raise ProviderError(
                f"API error: {_error_message(error_data, response.status_code)}",
                provider_id=self.provider_id,
                status_code=response.status_code,
                response=error_data,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"Invalid JSON response: {e}", provider_id=self.provider_id
            ) from e

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True


def _error_message(error_data: Any, status_code: int) -> str:
    """Pull a readable message out of a provider error body."""
    if isinstance(error_data, dict):
        error = error_data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str) and error:
            return error
        if error_data.get("message"):
            return error_data["message"]
    return str(status_code)
