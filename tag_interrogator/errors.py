"""
Exception types for the tag interrogator.

The hybrid pipeline absorbs NetworkError and ParseError stage by stage;
only ConfigurationError escapes it. The cloud backend lets NetworkError
reach the caller.
"""


class InterrogatorError(Exception):
    """Base exception for all interrogator errors."""
    pass


class ConfigurationError(InterrogatorError):
    """A required endpoint or API key is missing or malformed."""
    pass


class NetworkError(InterrogatorError):
    """Transport failure or error status from an external service."""
    pass


class ParseError(InterrogatorError):
    """A backend response did not have a recognisable shape."""
    pass
