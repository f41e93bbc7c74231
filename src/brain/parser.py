#!/usr/bin/env python3
"""
TA Agent Brain Module: Response Parser

Classifies a model reply as a tool call, plain text or a final answer.

Models do not always use the native tool-call channel; some write the
call as JSON in the message body or just name the tool. Extraction is
best-effort and tried in a fixed order. Each matcher either returns a
tool call or gives up, and the next one runs:

    1. native      - tool_calls on the response
    2. fenced_json - a ```json block holding a call object
    3. braces      - the first balanced {...} holding a "name" key,
                     with a regex fallback when it is not valid JSON
    4. keyword     - "call/use/run <tool>" naming a registered tool,
                     only in short replies without concluding language

When every matcher gives up, the reply is text. Text is a FINAL answer
when it carries an explicit stop phrase and is not asking for more data,
or when it is long and contains concluding language. Anything else is
TEXT and the loop asks the model again.
"""
import json
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from .types import LLMResponse, ParsedResponse, ResponseKind


logger = logging.getLogger(__name__)


FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
NAME_KEY = re.compile(r'\{\s*"(?:name|tool_name|function|tool_calls)"\s*:')
NAME_VALUE = re.compile(r'"name"\s*:\s*"([^"]+)"')
ARGUMENTS_VALUE = re.compile(r'"arguments"\s*:\s*(\{.*?\})', re.DOTALL)
KEYWORD_CALL = re.compile(r"\b(?:call|use|execute|run|invoke)\s+(?:the\s+)?(?:tool\s+)?`?([a-z_]+)`?", re.IGNORECASE)

EXPLICIT_STOP = re.compile(
    r"final answer|analysis complete|here'?s my|recommendation:|conclusion:|"
    r"i have enough|sufficient information|ready to provide|analysis done",
    re.IGNORECASE,
)
ASKS_FOR_MORE = re.compile(r"\b(?:need|missing|require|fetch|call)\b", re.IGNORECASE)
CONCLUDING = re.compile(
    r"conclusion|recommendation|summary|based on|according to|the data shows|"
    r"indicators show|overall",
    re.IGNORECASE,
)
# Connector words may sit between "confidence" and the number
CONFIDENCE = re.compile(
    r"confidence(?:\W+(?:is|of|level|score|rating|at|around|about|approximately|roughly))*"
    r"\W{0,12}(\d+(?:\.\d+)?)\s*(%?)",
    re.IGNORECASE,
)

MIN_FINAL_LENGTH = 100
MAX_KEYWORD_TEXT = 200


def extract_confidence(text: str) -> Optional[float]:
    """
    Confidence stated in free text, as a fraction in [0, 1].

    "confidence: 0.72", "Confidence 72%" and "confidence: 72" all give 0.72.
    """
    match = CONFIDENCE.search(text or "")
    if not match:
        return None
    value = float(match.group(1))
    if match.group(2) or value > 1.0:
        value /= 100.0
    return min(max(value, 0.0), 1.0)


def _decode_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return {str(k): v for k, v in raw.items()}
    if isinstance(raw, str) and raw.strip():
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.error(f"Failed to parse tool arguments: {raw[:200]}")
            return {}
        if isinstance(decoded, dict):
            return {str(k): v for k, v in decoded.items()}
    return {}


def _call_from_object(obj: Any) -> Optional[Dict[str, Any]]:
    """Read a tool call out of the object shapes models tend to emit."""
    if not isinstance(obj, dict):
        return None
    calls = obj.get("tool_calls")
    if isinstance(calls, list) and calls:
        return _call_from_object(calls[0])
    function = obj.get("function")
    if isinstance(function, dict):
        return _call_from_object(function)
    name = obj.get("name") or obj.get("tool_name")
    if not isinstance(name, str) or not name:
        return None
    raw_args = obj.get("arguments", obj.get("parameters", obj.get("params")))
    return {"name": name, "arguments": _decode_arguments(raw_args)}


def balanced_object(text: str, start: int) -> Optional[str]:
    """
    The balanced {...} substring beginning at `start`, honouring string
    literals and escapes. None if the braces never balance.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


class ResponseParser:
    """
    Ordered chain of tool-call matchers plus the final-answer heuristics.

    Usage:
        parser = ResponseParser(tool_names=registry.names())
        parsed = parser.parse(llm_response)
    """

    def __init__(self, tool_names: Iterable[str] = ()):
        self._tool_names = set(tool_names)
        self._matchers: List[Callable[[LLMResponse, str], Optional[Dict[str, Any]]]] = [
            self._match_native,
            self._match_fenced_json,
            self._match_braces,
            self._match_keyword,
        ]

    @property
    def matcher_names(self) -> List[str]:
        return [m.__name__.replace("_match_", "") for m in self._matchers]

    def parse(self, response: LLMResponse) -> ParsedResponse:
        text = response.content or ""
        confidence = extract_confidence(text)

        for matcher in self._matchers:
            call = matcher(response, text)
            if call is not None:
                source = matcher.__name__.replace("_match_", "")
                logger.debug(f"Tool call '{call['name']}' extracted by {source} matcher")
                return ParsedResponse(
                    kind=ResponseKind.TOOL_CALL,
                    content=text,
                    tool_name=call["name"],
                    arguments=call["arguments"],
                    source=source,
                    confidence=confidence,
                )

        kind = ResponseKind.FINAL if self.is_final_text(text) else ResponseKind.TEXT
        return ParsedResponse(kind=kind, content=text, confidence=confidence)

    @staticmethod
    def is_final_text(text: str) -> bool:
        if not text.strip():
            return False
        if EXPLICIT_STOP.search(text) and not ASKS_FOR_MORE.search(text):
            return True
        return len(text) > MIN_FINAL_LENGTH and bool(CONCLUDING.search(text))

    # -------------------------------------------------------------------------
    # Matchers (priority order)
    # -------------------------------------------------------------------------

    def _match_native(self, response: LLMResponse, text: str) -> Optional[Dict[str, Any]]:
        if not response.tool_calls:
            return None
        if len(response.tool_calls) > 1:
            names = [c.get("name") for c in response.tool_calls]
            logger.warning(f"Multiple tools requested, only processing first: {names}")
        return _call_from_object(response.tool_calls[0])

    def _match_fenced_json(self, response: LLMResponse, text: str) -> Optional[Dict[str, Any]]:
        for block in FENCED_JSON.findall(text):
            try:
                call = _call_from_object(json.loads(block))
            except json.JSONDecodeError:
                continue
            if call:
                return call
        return None

    def _match_braces(self, response: LLMResponse, text: str) -> Optional[Dict[str, Any]]:
        match = NAME_KEY.search(text)
        if not match:
            return None
        candidate = balanced_object(text, match.start())
        if candidate is None:
            return None
        try:
            return _call_from_object(json.loads(candidate))
        except json.JSONDecodeError:
            pass

        # Not valid JSON; salvage the name and, if possible, the arguments
        name = NAME_VALUE.search(candidate)
        if not name:
            return None
        arguments: Dict[str, Any] = {}
        args_match = ARGUMENTS_VALUE.search(candidate)
        if args_match:
            arguments = _decode_arguments(args_match.group(1))
        return {"name": name.group(1), "arguments": arguments}

    def _match_keyword(self, response: LLMResponse, text: str) -> Optional[Dict[str, Any]]:
        if not self._tool_names or len(text) > MAX_KEYWORD_TEXT or CONCLUDING.search(text):
            return None
        for match in KEYWORD_CALL.finditer(text):
            name = match.group(1).lower()
            if name in self._tool_names:
                return {"name": name, "arguments": {}}
        return None
