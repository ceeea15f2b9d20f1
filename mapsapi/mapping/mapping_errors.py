"""
Custom exceptions for the mapping module.

These exceptions separate the three hard failure modes of the library:
bad parameters, network failures, and responses that no longer match the
schema the parsers expect. API-level statuses such as ZERO_RESULTS are not
exceptions; they become missing values in the parsed output.
"""


class MapsApiError(Exception):
    """Base exception for mapsapi."""
    pass


class ValidationError(MapsApiError, ValueError):
    """Raised when request parameters are malformed, before any network call."""
    pass


class TransportError(MapsApiError):
    """Raised when the HTTP request fails (DNS, timeout, connection reset)."""
    pass


class ParseError(MapsApiError):
    """Raised when a response does not match the expected document schema."""
    pass
