"""
Providers Layer.

Provides unified access to external and local providers for:
- Structured text generation (OpenAI)
- Music and sound effects (ElevenLabs, local fallback)
- Blob storage for generated audio
"""
from .exceptions import (
    ProviderError,
    ProviderUnavailable,
    BillingError,
    GenerationSchemaError,
    SchemaValidationFailure,
    AudioGenerationFailure,
)

from .generation import (
    BaseGenerationProvider,
    OpenAIGenerationProvider,
    GenerationProviderFactory,
    get_generation_provider,
)

from .audio import (
    BaseAudioProvider,
    SynthesizedAudio,
    ElevenLabsAudioProvider,
    LocalAudioProvider,
    AudioProviderFactory,
    get_audio_provider,
)

from .storage import (
    BaseBlobStore,
    StoredObject,
    LocalBlobStore,
    get_blob_store,
)

__all__ = [
    # Exceptions
    "ProviderError",
    "ProviderUnavailable",
    "BillingError",
    "GenerationSchemaError",
    "SchemaValidationFailure",
    "AudioGenerationFailure",

    # Generation
    "BaseGenerationProvider",
    "OpenAIGenerationProvider",
    "GenerationProviderFactory",
    "get_generation_provider",

    # Audio
    "BaseAudioProvider",
    "SynthesizedAudio",
    "ElevenLabsAudioProvider",
    "LocalAudioProvider",
    "AudioProviderFactory",
    "get_audio_provider",

    # Storage
    "BaseBlobStore",
    "StoredObject",
    "LocalBlobStore",
    "get_blob_store",
]
