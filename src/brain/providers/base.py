#!/usr/bin/env python3
"""
TA Agent Brain Module: Base LLM Provider

Abstract interface for LLM providers.
All providers must implement this interface.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from errors import ReasoningError
from ..types import LLMResponse


logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Providers speak HTTP through a lazily created httpx.Client. Any
    transport failure, timeout, non-2xx status or unusable body surfaces
    as ReasoningError.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            base_url: API base URL
            model: Model identifier
            headers: Extra request headers (auth)
            timeout: Overall request timeout in seconds
            connect_timeout: Connect timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._transport = transport

        # Sync client (created on first use)
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._get_client().post(path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.provider_name} API error: {e.response.status_code} - {e.response.text[:300]}")
            raise ReasoningError(f"{self.provider_name} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"{self.provider_name} call failed: {e}")
            raise ReasoningError(f"{self.provider_name} request failed: {e}") from e
        except ValueError as e:
            raise ReasoningError(f"{self.provider_name} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise ReasoningError(f"{self.provider_name} returned a non-object body")
        return data

    def chat(self, messages: List[Dict[str, Any]], tools: Optional[List[Dict[str, Any]]] = None) -> LLMResponse:
        """
        Send one chat request.

        Args:
            messages: Role-tagged messages (system, user, assistant, tool)
            tools: Tool descriptors in OpenAI function format

        Returns:
            LLMResponse with canonical tool calls

        Raises:
            ReasoningError: On any transport or decode failure
        """
        start_time = time.time()
        path, payload = self.build_request(messages, tools or [])
        data = self._post(path, payload)
        response = self.parse_response(data)
        response.latency_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"{self.provider_name} replied in {response.latency_ms:.0f}ms: "
            f"{len(response.tool_calls)} tool call(s), {len(response.content)} chars"
        )
        return response

    @abstractmethod
    def build_request(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]):
        """
        Build the provider-native request.

        Returns:
            (path, payload) tuple
        """
        pass

    @abstractmethod
    def parse_response(self, data: Dict[str, Any]) -> LLMResponse:
        """
        Parse a provider-native body into an LLMResponse.

        Raises:
            ReasoningError: If the body has no message
        """
        pass

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        return self._model

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'ollama', 'grok')."""
        pass

    def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None
