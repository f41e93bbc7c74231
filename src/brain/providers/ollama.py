#!/usr/bin/env python3
"""
TA Agent Brain Module: Ollama Provider

Implementation of the LLMProvider interface for a local or remote Ollama
server (POST /api/chat, non-streaming).
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import ReasoningError
from .base import LLMProvider
from ..types import LLMResponse


logger = logging.getLogger(__name__)


OLLAMA_DEFAULT_MODEL = "llama3.2:3b"


class OllamaProvider(LLMProvider):
    """Ollama chat API with native tool calling."""

    def __init__(
        self,
        host_url: str,
        model: Optional[str] = None,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
        **kwargs
    ):
        """
        Initialize the Ollama provider.

        Args:
            host_url: Ollama server URL (e.g., http://localhost:11434)
            model: Model to use (default: llama3.2:3b)
            timeout: Request timeout in seconds
            connect_timeout: Connect timeout in seconds
            transport: Optional httpx transport (tests)
            **kwargs: Additional configuration (ignored)
        """
        if not host_url:
            raise ValueError("Ollama host URL is required")
        super().__init__(
            base_url=host_url,
            model=model or OLLAMA_DEFAULT_MODEL,
            timeout=timeout,
            connect_timeout=connect_timeout,
            transport=transport,
        )

    def build_request(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]):
        payload = {
            "model": self._model,
            "messages": [self._format_message(m) for m in messages],
            "stream": False,
            "options": {"temperature": 0.0},
        }
        if tools:
            payload["tools"] = tools
        return "/api/chat", payload

    @staticmethod
    def _format_message(message: Dict[str, Any]) -> Dict[str, Any]:
        formatted = {"role": message["role"], "content": message.get("content") or ""}
        if message.get("tool_calls"):
            formatted["tool_calls"] = [
                {"function": {"name": c["name"], "arguments": c.get("arguments", {})}}
                for c in message["tool_calls"]
            ]
        if message["role"] == "tool" and message.get("name"):
            formatted["tool_name"] = message["name"]
        return formatted

    def parse_response(self, data: Dict[str, Any]) -> LLMResponse:
        """
        Parse an Ollama chat body:
        {"message": {"content": "...", "tool_calls": [{"function": {...}}]},
         "done_reason": "stop", "prompt_eval_count": N, "eval_count": N}
        """
        message = data.get("message")
        if not isinstance(message, dict):
            raise ReasoningError("Ollama response has no message")

        tool_calls = []
        for call in message.get("tool_calls") or []:
            func = call.get("function") if isinstance(call, dict) else None
            if not isinstance(func, dict):
                raise ReasoningError(f"Ollama returned a malformed tool call: {call!r}")
            if not func.get("name"):
                continue
            arguments = func.get("arguments")
            if not isinstance(arguments, dict):
                if arguments:
                    logger.warning(f"Ignoring non-object arguments for {func['name']}: {arguments!r}")
                arguments = {}
            tool_calls.append({"name": func["name"], "arguments": arguments})

        prompt_tokens = data.get("prompt_eval_count", 0)
        completion_tokens = data.get("eval_count", 0)
        return LLMResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            finish_reason=data.get("done_reason"),
            model=data.get("model", self._model),
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "ollama"
