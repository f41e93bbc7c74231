#!/usr/bin/env python3
"""
TA Agent Brain Module: Type Definitions

Data classes for model responses, parsed responses, tool results and the
outcome of a reasoning loop.
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class LLMResponse:
    """
    Raw response from an LLM provider.

    Tool calls are in canonical form: [{"name": str, "arguments": dict}].
    """
    content: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    finish_reason: Optional[str] = None
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0

    def has_tool_call(self) -> bool:
        """Check if response contains a native tool call."""
        return len(self.tool_calls) > 0


class ResponseKind(str, Enum):
    TOOL_CALL = "tool_call"
    TEXT = "text"
    FINAL = "final"


@dataclass(frozen=True)
class ParsedResponse:
    """
    A model reply classified by the response parser.

    `source` names the matcher that produced a tool call (native, fenced_json,
    braces, keyword) and is None for text and final answers.
    """
    kind: ResponseKind
    content: str = ""
    tool_name: Optional[str] = None
    arguments: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def is_tool_call(self) -> bool:
        return self.kind is ResponseKind.TOOL_CALL

    @property
    def is_final(self) -> bool:
        return self.kind is ResponseKind.FINAL


@dataclass
class ValidationResult:
    """
    Result of validating tool arguments.
    """
    valid: bool                         # Whether validation passed
    errors: List[str] = field(default_factory=list)  # List of error messages

    def add_error(self, error: str):
        """Add an error and mark as invalid."""
        self.valid = False
        self.errors.append(error)


# ToolResult.error_kind values
ERROR_VALIDATION = "validation"
ERROR_EXECUTION = "execution"
ERROR_DISABLED = "disabled"
ERROR_UNKNOWN_TOOL = "unknown_tool"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool execution. Handlers never raise past this."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: str = ERROR_EXECUTION) -> "ToolResult":
        return cls(success=False, error=error, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error, "error_kind": self.error_kind}

    def to_message(self) -> str:
        """Compact JSON body used as the tool-role message content."""
        return json.dumps(self.to_dict(), default=str, separators=(",", ":"))


@dataclass
class LoopResult:
    """Outcome of one reasoning loop run."""
    success: bool
    answer: str = ""
    stop_reason: str = ""
    steps: int = 0
    confidence: Optional[float] = None
    tools_used: List[str] = field(default_factory=list)
    tool_errors: int = 0
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, steps: int = 0) -> "LoopResult":
        return cls(success=False, stop_reason="reasoning failed", steps=steps, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "success": self.success,
            "answer": self.answer,
            "stop_reason": self.stop_reason,
            "steps": self.steps,
            "confidence": self.confidence,
            "tools_used": list(self.tools_used),
            "tool_errors": self.tool_errors,
            "error": self.error,
        }
