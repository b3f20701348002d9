"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - use a specific subclass so callers can catch
    # precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # Only raised by field-scoped repository writes against an id that vanished. Reads return
    # None instead - "not found" on a lookup is normal flow in this pipeline.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConfigurationError(DomainException):
    """Raised when required configuration is invalid (not merely missing)."""

    pass


class ProviderError(DomainException):
    """Raised when an external provider returns something we cannot use."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderAuthenticationError(ProviderError):
    """Raised when a provider rejects our credentials.

    Hey future me - this is a SOFT failure for the pipeline! Aggregators catch it per
    entity, log it and carry on with the other providers. It only exists so logs can tell
    "Spotify is down" apart from "our client secret was rotated".
    """

    def __init__(
        self,
        provider: str,
        message: str = "credentials rejected",
        http_status: int | None = None,
    ) -> None:
        super().__init__(provider, message)
        self.http_status = http_status


__all__ = [
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ProviderAuthenticationError",
    "ProviderError",
]
