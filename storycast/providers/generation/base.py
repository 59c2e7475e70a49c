"""
Base class for structured generation providers.
"""
from abc import ABC, abstractmethod
from typing import Optional, Type, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class BaseGenerationProvider(ABC):
    """Abstract base class for schema-constrained text generation."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is available."""
        pass

    @abstractmethod
    async def generate(
        self,
        schema: Type[T],
        system_instructions: str,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.8,
    ) -> T:
        """
        Generate an object conforming to ``schema``.

        Args:
            schema: Pydantic model the output must validate against
            system_instructions: System prompt for the model
            prompt: User prompt
            model: Optional model override
            temperature: Sampling temperature

        Returns:
            Validated instance of ``schema``

        Raises:
            GenerationSchemaError: output never validated
            ProviderUnavailable: provider unreachable or unconfigured
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
