"""Exception types raised by the provider adapters."""

from __future__ import annotations


class BlasterError(Exception):
    """Base class for errors surfaced by Blaster."""


class ConfigurationError(BlasterError):
    """A required credential is missing or still a placeholder."""


class SearchProviderError(BlasterError):
    """A scraped search backend returned an error or unusable page."""


class SearchAPIError(BlasterError):
    """A keyed search API rejected the request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TwitterAPIError(BlasterError):
    """The Twitter API rejected the request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LLMError(BlasterError):
    """The chat completion call failed or produced no answer."""


_STATUS_MESSAGES = {
    429: "{service} rate limit exceeded. Please try again later.",
    401: "{service} authentication failed. Please check your API credentials.",
    403: "{service} authentication failed. Please check your API credentials.",
    400: "Invalid search query. Please try a different search term.",
    503: "{service} service is temporarily unavailable. Please try again later.",
}


def describe_status(service: str, status_code: int) -> str | None:
    """Human readable message for the provider status codes we special-case."""

    template = _STATUS_MESSAGES.get(status_code)
    if template is None:
        return None
    return template.format(service=service)


def describe_query_failure(query: str, exc: Exception, action: str) -> str:
    """Summary line for a query that failed inside a fan-out."""

    message = str(exc).lower()
    if "rate limit" in message:
        return f"Rate limit exceeded for query: {query}. Please wait before trying again."
    if "authentication" in message:
        return f"Authentication failed for query: {query}. Please check API credentials."
    return f"Failed to {action} for query: {query}"
