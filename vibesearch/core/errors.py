"""Exception hierarchy shared by the search pipeline and the HTTP layer."""

from typing import Optional, Sequence


class SearchError(RuntimeError):
    """Base class for errors raised by the search worker."""


class ConfigurationError(SearchError):
    """Raised when a required credential or setting is missing."""

    def __init__(self, variables: Sequence[str], message: Optional[str] = None) -> None:
        self.variables = tuple(variables)
        if message is None:
            message = f"{', '.join(self.variables)} must be set in the environment"
        super().__init__(message)


class ProviderError(SearchError):
    """Raised when an upstream provider call fails."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderTimeout(ProviderError):
    """Raised when an upstream provider call exceeds its timeout."""


class SearchFailedError(ProviderError):
    """Raised when no source can produce results because the query could not be embedded."""


class ParseError(SearchError):
    """Raised when a structured provider response cannot be parsed."""


class AIResponseParseError(ParseError):
    """Raised when the LLM response holds neither a JSON object nor an array."""


class ValidationError(ValueError):
    """Raised for bad client input; always reported as HTTP 400."""


class DimensionMismatch(ValueError):
    """Raised when two vectors of different length are compared."""
