#!/usr/bin/env python3
"""
TA Agent Brain Module: LLM Providers

Provider factory and exports.
"""
from .base import LLMProvider
from .ollama import OllamaProvider
from .openai_compat import OpenAICompatibleProvider, PRESETS


def get_provider(provider_name: str, **kwargs) -> LLMProvider:
    """
    Factory function to get an LLM provider instance.

    Args:
        provider_name: "ollama", "grok" or "groq"
        **kwargs: Provider-specific configuration

    Returns:
        LLMProvider instance

    Raises:
        ValueError: If provider_name is not supported
    """
    name = provider_name.lower()
    if name == "ollama":
        return OllamaProvider(**kwargs)
    if name in PRESETS:
        return OpenAICompatibleProvider(preset=name, **kwargs)

    supported = ", ".join(["ollama", *PRESETS])
    raise ValueError(f"Unknown provider '{provider_name}'. Supported: {supported}")


def provider_from_config(config) -> LLMProvider:
    """Build the provider an AgentConfig describes."""
    return get_provider(
        config.llm_provider,
        host_url=config.llm_host_url,
        api_key=config.llm_api_key,
        model=config.llm_model,
        timeout=config.llm_timeout,
        connect_timeout=config.connect_timeout,
    )


__all__ = [
    "LLMProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "get_provider",
    "provider_from_config",
]
