#!/usr/bin/env python3
"""
TA Agent: Error Taxonomy

Every failure the agent knows how to handle has a class here.

- DataSourceError: broker fetch failed. Fails the current gate only.
- ReasoningError: model unreachable or reply malformed. Triggers the
  deterministic fallback.
- ToolExecutionError: a tool handler raised or reported failure.
- ValidationError: tool arguments did not match the tool schema.
- ConfigurationError: required settings missing. Fatal at startup.
"""


class TradingAgentError(Exception):
    """Base class for all agent errors."""


class DataSourceError(TradingAgentError):
    """Market data could not be fetched or decoded."""


class ReasoningError(TradingAgentError):
    """The language model endpoint failed or returned an unusable reply."""


class ToolExecutionError(TradingAgentError):
    """A tool handler failed while running."""


class ValidationError(TradingAgentError):
    """Tool arguments failed schema validation."""


class ConfigurationError(TradingAgentError):
    """Required configuration is missing or malformed."""
