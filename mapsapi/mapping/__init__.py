"""
Mapping module for mapsapi.

This module provides functionality for:
- Building Directions, Distance Matrix, Geocoding and Static Maps requests
- Issuing them sequentially with a fixed delay between batch requests
- Parsing the responses into GeoDataFrames, tables and rasters

Main classes:
- GoogleMapsClient: HTTP wrapper returning raw response documents
- MappingOrchestrator: Request-and-parse shortcuts
- FixedDelayRateLimiter: Pause between successive requests
- ClientConfig: Timeout, delay and verbosity settings

Parsers:
- get_routes, get_segments, get_matrix, get_points, get_bounds, get_static_image

Errors:
- MapsApiError: Base exception
- ValidationError: Invalid request parameters
- TransportError: Network failures
- ParseError: Unexpected response schema
"""

from .mapping_assembler import assemble_layer, assemble_matrix, name_responses
from .mapping_client import GeocodeResponse, GoogleMapsClient, StaticMapResponse
from .mapping_config import ClientConfig
from .mapping_errors import MapsApiError, ParseError, TransportError, ValidationError
from .mapping_parsers import (
    StaticMapImage,
    get_bounds,
    get_matrix,
    get_points,
    get_routes,
    get_segments,
    get_static_image,
)
from .mapping_rate_limiter import FixedDelayRateLimiter
from .mapping_workflow import MappingOrchestrator

__all__ = [
    # Main classes
    "GoogleMapsClient",
    "MappingOrchestrator",
    "FixedDelayRateLimiter",
    "ClientConfig",

    # Response types
    "GeocodeResponse",
    "StaticMapResponse",
    "StaticMapImage",

    # Parsers
    "get_routes",
    "get_segments",
    "get_matrix",
    "get_points",
    "get_bounds",
    "get_static_image",

    # Assembly
    "assemble_layer",
    "assemble_matrix",
    "name_responses",

    # Errors
    "MapsApiError",
    "ValidationError",
    "TransportError",
    "ParseError",
]
