"""
Generation provider factory.
"""
from typing import Literal, Optional

from .base import BaseGenerationProvider
from .openai import OpenAIGenerationProvider
from ..exceptions import ProviderUnavailable


ProviderType = Literal["auto", "openai"]


class GenerationProviderFactory:
    """Factory for creating structured generation providers."""

    _providers = {
        "openai": OpenAIGenerationProvider,
    }

    @classmethod
    def create(cls, provider: ProviderType = "auto") -> BaseGenerationProvider:
        if provider == "auto":
            provider = "openai"
        if provider not in cls._providers:
            raise ProviderUnavailable(provider, "unknown generation provider")
        return cls._providers[provider]()


_provider: Optional[BaseGenerationProvider] = None


def get_generation_provider(provider: ProviderType = "auto") -> BaseGenerationProvider:
    """Get the shared generation provider."""
    global _provider
    if _provider is None:
        _provider = GenerationProviderFactory.create(provider)
    return _provider


def reset_generation_provider() -> None:
    """Drop the shared provider (testing)."""
    global _provider
    _provider = None
