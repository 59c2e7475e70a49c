from .base import BaseGenerationProvider
from .openai import OpenAIGenerationProvider
from .factory import GenerationProviderFactory, get_generation_provider, reset_generation_provider

__all__ = [
    "BaseGenerationProvider",
    "OpenAIGenerationProvider",
    "GenerationProviderFactory",
    "get_generation_provider",
    "reset_generation_provider",
]
