"""
High-level orchestrator for the mapping workflow.

Chains GoogleMapsClient requests with the response parsers so callers can
go from parameters to layers, tables and rasters in one call.
"""

from typing import Any, Dict, List

import geopandas as gpd
import pandas as pd

from ..config.logger_module import log_info, log_warning
from .mapping_assembler import name_responses
from .mapping_client import GeocodeResponse, GoogleMapsClient
from .mapping_parsers import (
    StaticMapImage,
    get_bounds,
    get_matrix,
    get_points,
    get_routes,
    get_segments,
    get_static_image,
)


class MappingOrchestrator:
    """
    Request-and-parse shortcuts on top of GoogleMapsClient.

    The client keeps the raw documents available for callers who want
    several views of one response (e.g. routes and segments).
    """

    def __init__(self, maps_client: GoogleMapsClient = None):
        """
        Initialize the orchestrator.

        Args:
            maps_client: Google Maps client instance
        """
        self.client = maps_client or GoogleMapsClient()
        log_info("MappingOrchestrator initialized")

    def routes(self, origin: Any, destination: Any, **kwargs) -> gpd.GeoDataFrame:
        """Directions request parsed into one feature per alternative route."""
        return get_routes(self.client.directions(origin, destination, **kwargs))

    def segments(self, origin: Any, destination: Any, **kwargs) -> gpd.GeoDataFrame:
        """Directions request parsed into one feature per step."""
        return get_segments(self.client.directions(origin, destination, **kwargs))

    def distance_matrix(self,
                        origins: Any,
                        destinations: Any,
                        value: str = "distance_m",
                        label: bool = True,
                        **kwargs) -> pd.DataFrame:
        """
        Distance Matrix request parsed into a table.

        Args:
            origins: Origin locations
            destinations: Destination locations
            value: Cell value, see mapping_parsers.MATRIX_VALUES
            label: Use the inputs as row/column labels when they are place names
            **kwargs: Passed to GoogleMapsClient.matrix

        Returns:
            DataFrame with one row per origin and one column per destination
        """
        table = get_matrix(self.client.matrix(origins, destinations, **kwargs), value=value)

        if label and not table.empty:
            row_labels = _labels(origins)
            col_labels = _labels(destinations)
            if row_labels is not None and len(row_labels) == table.shape[0]:
                table.index = row_labels
            if col_labels is not None and len(col_labels) == table.shape[1]:
                table.columns = col_labels
        return table

    def geocode(self, addresses: Any, **kwargs) -> List[GeocodeResponse]:
        """Geocode addresses, logging a summary of the batch."""
        responses = self.client.geocode(addresses, **kwargs)

        found = sum(r.status == "OK" for r in responses)
        missing = sum(r.address is None for r in responses)
        log_info(
            f"Geocoding complete: {found} found, {missing} missing, "
            f"{len(responses) - found - missing} without result"
        )
        if found == 0:
            log_warning("No address could be geocoded")
        return responses

    def geocode_points(self, addresses: Any, all_results: bool = True, **kwargs) -> gpd.GeoDataFrame:
        """Geocode addresses and return their locations as points."""
        return get_points(self.geocode(addresses, **kwargs), all_results=all_results)

    def geocode_bounds(self, addresses: Any, all_results: bool = True, **kwargs) -> gpd.GeoDataFrame:
        """Geocode addresses and return their viewports as polygons."""
        return get_bounds(self.geocode(addresses, **kwargs), all_results=all_results)

    def geocode_documents(self, addresses: Any, **kwargs) -> pd.Series:
        """Geocode addresses and return the raw documents keyed by address."""
        return name_responses(self.geocode(addresses, **kwargs))

    def static_image(self, center: Any, **kwargs) -> StaticMapImage:
        """Static Maps request decoded into a georeferenced raster."""
        return get_static_image(self.client.static_map(center, **kwargs))

    def get_stats(self) -> Dict[str, Any]:
        """Transport settings and rate limiter counters."""
        return self.client.get_rate_limit_status()


def _labels(locations: Any):
    """Place-name labels for a matrix axis, or None when any input is not a string."""
    if isinstance(locations, str):
        return [locations]
    if isinstance(locations, (list, tuple)) and all(isinstance(x, str) for x in locations):
        return list(locations)
    return None
