#!/usr/bin/env python3
"""
TA Agent: Configuration

Builds a single AgentConfig value at startup. The value is passed by
reference into the pipeline, the tool registry and the reasoning loop;
nothing reads the environment after load_config() returns.

Precedence: process environment > project .env file > defaults.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from errors import ConfigurationError


PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"

REQUIRED_VARS = ("DHANHQ_CLIENT_ID", "DHANHQ_ACCESS_TOKEN")
ALIASES = {
    "CLIENT_ID": "DHANHQ_CLIENT_ID",
    "ACCESS_TOKEN": "DHANHQ_ACCESS_TOKEN",
}

DEFAULT_MODELS = {
    "ollama": "llama3.2:3b",
    "grok": "grok-3-mini-fast",
    "groq": "llama-3.3-70b-versatile",
}


@dataclass(frozen=True)
class AgentConfig:
    """Immutable runtime configuration."""
    dhan_client_id: str
    dhan_access_token: str
    dhan_base_url: str = "https://api.dhan.co/v2"

    llm_provider: str = "ollama"
    llm_host_url: str = ""
    llm_model: str = DEFAULT_MODELS["ollama"]
    llm_api_key: str = ""

    default_symbol: str = "NIFTY"
    max_spread_pct: float = 3.0

    # Reasoning loop bounds
    max_steps: int = 3
    extra_steps: int = 2
    max_tool_errors: int = 5
    min_confidence: float = 0.3
    max_memory_items: int = 50
    max_history_items: int = 10
    tool_mode: str = "alert"

    # Transport timeouts (seconds)
    connect_timeout: float = 5.0
    llm_timeout: float = 30.0
    data_timeout: float = 10.0

    @property
    def llm_enabled(self) -> bool:
        """Reasoning runs only when the configured provider is reachable in principle."""
        if self.llm_provider == "ollama":
            return bool(self.llm_host_url.strip())
        return bool(self.llm_api_key.strip())


def read_env_file(path: Path) -> Dict[str, str]:
    """Parse KEY=VALUE lines from a .env file. Missing file yields {}."""
    values: Dict[str, str] = {}
    if not path.exists():
        return values
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def _resolve_aliases(values: Dict[str, str]) -> None:
    for alias, canonical in ALIASES.items():
        if values.get(alias, "").strip() and not values.get(canonical, "").strip():
            values[canonical] = values[alias]


def _number(values: Mapping[str, str], key: str, default, cast):
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a {cast.__name__}, got '{raw}'")


def load_config(
    env: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = None,
) -> AgentConfig:
    """
    Load configuration from the environment and an optional .env file.

    Args:
        env: Environment mapping (defaults to os.environ)
        env_file: .env path (defaults to the project root .env)

    Returns:
        AgentConfig

    Raises:
        ConfigurationError: If required settings are missing or malformed
    """
    values = read_env_file(env_file or DEFAULT_ENV_FILE)
    values.update(os.environ if env is None else env)
    _resolve_aliases(values)

    missing = [var for var in REQUIRED_VARS if not values.get(var, "").strip()]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}. "
            f"Set them in the environment or in {DEFAULT_ENV_FILE}"
        )

    provider = values.get("LLM_PROVIDER", "ollama").strip().lower() or "ollama"
    if provider not in DEFAULT_MODELS:
        supported = ", ".join(DEFAULT_MODELS)
        raise ConfigurationError(f"Unknown LLM_PROVIDER '{provider}'. Supported: {supported}")

    tool_mode = values.get("TA_TOOL_MODE", "alert").strip().lower() or "alert"
    if tool_mode not in ("alert", "live"):
        raise ConfigurationError(f"TA_TOOL_MODE must be 'alert' or 'live', got '{tool_mode}'")

    return AgentConfig(
        dhan_client_id=values["DHANHQ_CLIENT_ID"].strip(),
        dhan_access_token=values["DHANHQ_ACCESS_TOKEN"].strip(),
        dhan_base_url=values.get("DHANHQ_BASE_URL", "https://api.dhan.co/v2"),
        llm_provider=provider,
        llm_host_url=values.get("OLLAMA_HOST_URL", ""),
        llm_model=values.get("LLM_MODEL") or DEFAULT_MODELS[provider],
        llm_api_key=values.get("LLM_API_KEY", ""),
        default_symbol=values.get("TA_DEFAULT_SYMBOL", "NIFTY").upper(),
        max_spread_pct=_number(values, "TA_MAX_SPREAD_PCT", 3.0, float),
        max_steps=_number(values, "TA_MAX_STEPS", 3, int),
        extra_steps=_number(values, "TA_EXTRA_STEPS", 2, int),
        max_tool_errors=_number(values, "TA_MAX_TOOL_ERRORS", 5, int),
        tool_mode=tool_mode,
        connect_timeout=_number(values, "TA_CONNECT_TIMEOUT", 5.0, float),
        llm_timeout=_number(values, "TA_LLM_TIMEOUT", 30.0, float),
        data_timeout=_number(values, "TA_DATA_TIMEOUT", 10.0, float),
    )
