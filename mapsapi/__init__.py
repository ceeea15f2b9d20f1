"""
mapsapi: Google Maps Directions, Distance Matrix, Geocoding and Static Maps
requests parsed into GeoDataFrames, tables and georeferenced rasters.
"""

from .mapping import *  # noqa: F401,F403
from .mapping import __all__

__version__ = "1.0.0"
