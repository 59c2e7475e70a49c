"""
Provider exceptions.
"""


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}")


class ProviderUnavailable(ProviderError):
    """Provider is not available (missing API key, network error, etc.)."""

    def __init__(self, provider: str, reason: str = "unavailable"):
        super().__init__(provider, f"Provider unavailable: {reason}")
        self.reason = reason


class BillingError(ProviderError):
    """Provider refused the request for quota or billing reasons."""

    def __init__(self, provider: str, detail: str):
        super().__init__(provider, f"Billing error: {detail[:200]}")
        self.detail = detail


class GenerationSchemaError(ProviderError):
    """Model output failed schema validation on every attempt."""

    def __init__(self, provider: str, schema_name: str, attempts: int, last_error: str = ""):
        super().__init__(
            provider,
            f"{schema_name} failed validation after {attempts} attempt(s): {last_error[:300]}",
        )
        self.schema_name = schema_name
        self.attempts = attempts
        self.last_error = last_error


SchemaValidationFailure = GenerationSchemaError


class AudioGenerationFailure(ProviderError):
    """Audio synthesis or upload failed for a single cue."""
