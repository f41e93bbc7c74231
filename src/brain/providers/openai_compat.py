#!/usr/bin/env python3
"""
TA Agent Brain Module: OpenAI-Compatible Provider

Implementation of the LLMProvider interface for chat-completions APIs that
follow the OpenAI format. Presets cover xAI Grok and Groq.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import ReasoningError
from .base import LLMProvider
from ..types import LLMResponse


logger = logging.getLogger(__name__)


# name -> (API base, default model)
PRESETS = {
    "grok": ("https://api.x.ai/v1", "grok-3-mini-fast"),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.3-70b-versatile"),
}


class OpenAICompatibleProvider(LLMProvider):
    """
    Chat-completions provider with tool calling.

    Tool results are sent back as user messages. Calls recovered from plain
    text carry no call id, which the tool role requires on these APIs.
    """

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        preset: str = "grok",
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
        **kwargs
    ):
        """
        Initialize the provider.

        Args:
            api_key: API key
            model: Model to use (preset default if None)
            preset: "grok" or "groq"
            base_url: Override the preset API base
            timeout: Request timeout in seconds
            connect_timeout: Connect timeout in seconds
            transport: Optional httpx transport (tests)
            **kwargs: Additional configuration (ignored)
        """
        if preset not in PRESETS:
            raise ValueError(f"Unknown preset '{preset}'. Supported: {', '.join(PRESETS)}")
        if not api_key:
            raise ValueError(f"API key is required for {preset}")
        default_base, default_model = PRESETS[preset]
        super().__init__(
            base_url=base_url or default_base,
            model=model or default_model,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            connect_timeout=connect_timeout,
            transport=transport,
        )
        self._preset = preset
        self._numeric_fields: Dict[str, Dict[str, str]] = {}

    def build_request(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]):
        self._numeric_fields = self._numeric_fields_of(tools)
        payload = {
            "model": self._model,
            "messages": [self._format_message(m) for m in messages],
            "temperature": 0.0,
            "max_tokens": 1024,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return "/chat/completions", payload

    @staticmethod
    def _numeric_fields_of(tools: List[Dict[str, Any]]) -> Dict[str, Dict[str, str]]:
        fields = {}
        for tool in tools:
            fn = tool.get("function", {})
            props = fn.get("parameters", {}).get("properties", {})
            fields[fn.get("name")] = {
                name: spec["type"] for name, spec in props.items()
                if spec.get("type") in ("number", "integer")
            }
        return fields

    @staticmethod
    def _format_message(message: Dict[str, Any]) -> Dict[str, Any]:
        role = message["role"]
        content = message.get("content") or ""
        if role == "tool":
            return {"role": "user", "content": f"Tool result ({message.get('name', 'tool')}): {content}"}
        if role == "assistant" and message.get("tool_calls"):
            calls = "; ".join(
                f"{c['name']}({json.dumps(c.get('arguments', {}), default=str)})"
                for c in message["tool_calls"]
            )
            content = f"{content}\n[called {calls}]".strip()
        return {"role": role, "content": content}

    def _coerce_numbers(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Coerce numeric strings (e.g., "22500" for a number field) to numbers
        using the schema of the tools sent with the request.
        """
        for field, kind in self._numeric_fields.get(tool_name, {}).items():
            value = arguments.get(field)
            if not isinstance(value, str):
                continue
            try:
                arguments[field] = int(float(value)) if kind == "integer" else float(value)
                logger.debug(f"Coerced {field} from string to {kind}")
            except ValueError:
                logger.warning(f"Failed to coerce {field}='{value}' to {kind}")
        return arguments

    def parse_response(self, data: Dict[str, Any]) -> LLMResponse:
        """
        Parse a chat-completions body:
        {"choices": [{"message": {"content": ..., "tool_calls": [...]},
                      "finish_reason": ...}], "usage": {...}}
        """
        choices = data.get("choices") or []
        message = choices[0].get("message") if choices and isinstance(choices[0], dict) else None
        if not isinstance(message, dict):
            raise ReasoningError(f"{self._preset} response has no message")

        tool_calls = []
        for call in message.get("tool_calls") or []:
            func = call.get("function") if isinstance(call, dict) else None
            if not isinstance(func, dict):
                raise ReasoningError(f"{self._preset} returned a malformed tool call: {call!r}")
            name = func.get("name")
            if not name:
                continue
            raw = func.get("arguments") or "{}"
            try:
                arguments = json.loads(raw) if isinstance(raw, str) else raw
            except json.JSONDecodeError:
                logger.error(f"Failed to parse tool arguments: {raw}")
                arguments = {}
            if not isinstance(arguments, dict):
                logger.warning(f"Ignoring non-object arguments for {name}: {raw!r}")
                arguments = {}
            tool_calls.append({"name": name, "arguments": self._coerce_numbers(name, arguments)})

        usage = data.get("usage") or {}
        return LLMResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            finish_reason=choices[0].get("finish_reason"),
            model=data.get("model", self._model),
            usage={
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
            },
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return self._preset
