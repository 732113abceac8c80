class HealingError(RuntimeError):
    """Raised when selector healing fails."""


class ConfigurationError(HealingError):
    """Raised when the healer configuration is incomplete or invalid."""


class SuggestionUnavailable(HealingError):
    """Raised when a model backend declines or errors on a suggestion request."""


class QuotaExceeded(SuggestionUnavailable):
    """Raised when a backend reports a rate or usage limit."""


class BackendUnavailable(SuggestionUnavailable):
    """Raised for connectivity and authentication failures."""


class ModelNotFound(SuggestionUnavailable):
    """Raised when a backend does not know the requested model variant."""


class NoSuggestionProduced(HealingError):
    """Raised when a backend returns no usable selector text."""

    def __init__(self, message: str = "AI could not suggest a new selector") -> None:
        super().__init__(message)


class SelectorValidationError(HealingError):
    """Raised when an LLM returns an unusable selector."""


class ValidationFailed(SelectorValidationError):
    """Raised when a suggested selector does not resolve on the live page."""

    def __init__(self, message: str = "Suggested selector also failed") -> None:
        super().__init__(message)
