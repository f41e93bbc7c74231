#!/usr/bin/env python3
"""
TA Agent Brain Module: Tool Registry

Catalog of operations the reasoning loop may call. Each tool has a
parameter schema checked before its handler runs. Handlers report
failures by raising ValidationError or ToolExecutionError (or returning a
failed ToolResult); the registry hands every failure back as a ToolResult,
never as an exception.

Tools are either analysis tools (always enabled) or execution tools,
which run only when the registry is in LIVE mode.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from errors import ToolExecutionError, ValidationError
from .types import (
    ERROR_DISABLED,
    ERROR_EXECUTION,
    ERROR_UNKNOWN_TOOL,
    ERROR_VALIDATION,
    ToolResult,
)
from .validation import check_schema, validate_arguments


logger = logging.getLogger(__name__)


class ToolMode(str, Enum):
    ALERT = "alert"     # read-only
    LIVE = "live"       # execution tools enabled


DISABLED_IN_ALERT_MODE = "Execution tools are disabled in alert mode"

Handler = Callable[[Dict[str, Any]], Any]


@dataclass
class ToolDefinition:
    name: str
    description: str
    params: Dict[str, Dict[str, Any]]
    handler: Handler
    execution: bool = False

    def enabled(self, mode: ToolMode) -> bool:
        return not self.execution or mode is ToolMode.LIVE

    def to_schema(self) -> Dict[str, Any]:
        """OpenAI-style function descriptor."""
        properties = {}
        for name, spec in self.params.items():
            prop = {"type": spec["type"]}
            if spec.get("description"):
                prop["description"] = spec["description"]
            if spec.get("enum"):
                prop["enum"] = list(spec["enum"])
            properties[name] = prop
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": [n for n, s in self.params.items() if s.get("required")],
                },
            },
        }


@dataclass
class ToolRegistry:
    """
    Per-run tool catalog.

    Usage:
        registry = ToolRegistry(mode=ToolMode.ALERT)
        registry.register("get_option_candidates", "...", {}, handler)
        result = registry.execute("get_option_candidates", {})
    """
    mode: ToolMode = ToolMode.ALERT
    _tools: Dict[str, ToolDefinition] = field(default_factory=dict)

    def register(
        self,
        name: str,
        description: str,
        params: Optional[Mapping[str, Mapping[str, Any]]],
        handler: Handler,
        execution: bool = False,
    ) -> ToolDefinition:
        """
        Register a tool.

        Raises:
            ValueError: If the name is taken or the schema uses an unsupported type
        """
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered")
        params = {k: dict(v) for k, v in (params or {}).items()}
        check_schema(params)
        tool = ToolDefinition(name, description, params, handler, execution)
        self._tools[name] = tool
        return tool

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self, enabled_only: bool = True) -> List[str]:
        return [n for n, t in self._tools.items() if not enabled_only or t.enabled(self.mode)]

    def is_enabled(self, name: str) -> bool:
        tool = self._tools.get(name)
        return tool is not None and tool.enabled(self.mode)

    def to_schema(self) -> List[Dict[str, Any]]:
        """Descriptors for every tool enabled in the current mode."""
        return [t.to_schema() for t in self._tools.values() if t.enabled(self.mode)]

    def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Validate and run a tool.

        Returns:
            ToolResult; errors are tagged with validation, execution,
            disabled or unknown_tool
        """
        arguments = {} if arguments is None else arguments
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {name}")
            return ToolResult.fail(f"Unknown tool '{name}'", ERROR_UNKNOWN_TOOL)

        if not tool.enabled(self.mode):
            logger.warning(f"Blocked execution tool '{name}' in {self.mode.value} mode")
            return ToolResult.fail(DISABLED_IN_ALERT_MODE, ERROR_DISABLED)

        validation = validate_arguments(tool.params, arguments)
        if not validation.valid:
            logger.info(f"Tool '{name}' rejected arguments: {validation.errors}")
            return ToolResult.fail("; ".join(validation.errors), ERROR_VALIDATION)

        start_time = time.time()
        try:
            outcome = tool.handler(arguments)
        except ValidationError as e:
            logger.info(f"Tool '{name}' rejected arguments: {e}")
            return ToolResult.fail(str(e), ERROR_VALIDATION)
        except ToolExecutionError as e:
            logger.warning(f"Tool '{name}' failed: {e}")
            return ToolResult.fail(str(e), ERROR_EXECUTION)
        except Exception as e:
            logger.error(f"Tool '{name}' raised: {e}", exc_info=True)
            return ToolResult.fail(f"{type(e).__name__}: {e}", ERROR_EXECUTION)

        elapsed_ms = (time.time() - start_time) * 1000
        result = outcome if isinstance(outcome, ToolResult) else ToolResult.ok(outcome)
        if result.success:
            logger.info(f"Tool '{name}' completed in {elapsed_ms:.0f}ms")
        else:
            logger.warning(f"Tool '{name}' failed in {elapsed_ms:.0f}ms: {result.error}")
        return result
