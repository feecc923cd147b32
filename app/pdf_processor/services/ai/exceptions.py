"""
Shared exceptions for AI service modules.
"""


class AIServiceError(Exception):
    """Raised when AI service operations fail."""

    pass


class InvalidInputError(AIServiceError):
    """Raised when the document handed to the extraction client is unusable."""

    pass


class ConfigurationError(AIServiceError):
    """Raised when the extraction prompt cannot be loaded."""

    pass


class ExtractionError(AIServiceError):
    """Raised when the upstream model call fails or returns an unusable reply."""

    pass
