"""
Configuration for the mapping client.

Defines the transport settings shared by every request: connect timeout,
the fixed delay inserted between successive requests, whether progress
lines are printed, and the User-Agent header.
"""

from dataclasses import dataclass

from ..config.config_module import (
    QUIET_ENV,
    REQUEST_DELAY_ENV,
    TIMEOUT_ENV,
    get_bool_config,
    get_float_config,
)


@dataclass(frozen=True)
class ClientConfig:
    """Transport settings for GoogleMapsClient."""

    # Seconds allowed for establishing the connection
    timeout: float = 10.0

    # Seconds to wait between successive requests of one batch
    # (the Geocoding API allows roughly 50 requests per minute)
    request_delay: float = 1.0

    # Suppress per-request progress lines
    quiet: bool = False

    user_agent: str = "mapsapi-python/1.0"

    def __post_init__(self):
        """Validate configuration values."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

        if self.request_delay < 0:
            raise ValueError(
                f"request_delay cannot be negative, got {self.request_delay}"
            )

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a config from MAPSAPI_* environment variables."""
        return cls(
            timeout=get_float_config(TIMEOUT_ENV, cls.timeout),
            request_delay=get_float_config(REQUEST_DELAY_ENV, cls.request_delay),
            quiet=get_bool_config(QUIET_ENV, cls.quiet),
        )
