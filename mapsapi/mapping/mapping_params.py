"""
Request builder for the Google Maps web services.

Turns typed parameters into percent-encoded request URLs for the
Directions, Distance Matrix, Geocoding and Static Maps endpoints.
All validation happens here, before any network call is made.

Locations are accepted as (lon, lat) pairs, shapely Points or place-name
strings. Bounding boxes follow the (xmin, ymin, xmax, ymax) order used by
shapely and geopandas and are reordered to the southwest/northeast
lat,lng form Google expects.
"""

import numbers
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode

import googlemaps.convert
import pandas as pd
from shapely.geometry import Point

from .mapping_errors import ValidationError


DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/xml"
DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/xml"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/xml"
STATIC_MAP_URL = "https://maps.googleapis.com/maps/api/staticmap"

TRAVEL_MODES = ("driving", "transit", "walking", "bicycling")
AVOID_OPTIONS = ("tolls", "highways", "ferries", "indoor")
TRAFFIC_MODELS = ("best_guess", "pessimistic", "optimistic")
TRANSIT_MODES = ("bus", "subway", "train", "tram", "rail")
TRANSIT_PREFERENCES = ("less_walking", "fewer_transfers")
MAP_TYPES = ("roadmap", "satellite", "terrain", "hybrid")
IMAGE_FORMATS = ("png", "png8", "png32", "gif", "jpg", "jpg-baseline")

MAX_STATIC_MAP_SIZE = 640

# Characters kept literal in query values; everything else is percent-encoded
_SAFE_CHARS = ",|:"


@dataclass(frozen=True)
class GeocodeQuery:
    """Parameters for one geocode request, aligned to its input index."""
    index: int
    address: Optional[str]
    region: Optional[str] = None
    postcode: Optional[str] = None
    bounds: Optional[Tuple[float, float, float, float]] = None

    @property
    def is_missing(self) -> bool:
        return self.address is None


# ==================== scalar helpers ====================

def is_missing(value: Any) -> bool:
    """True for None, NaN and pandas NA; empty strings are handled by callers."""
    return value is None or (pd.api.types.is_scalar(value) and pd.isna(value))


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _is_coordinate_pair(value: Any) -> bool:
    return (
        isinstance(value, (tuple, list))
        and len(value) == 2
        and all(_is_number(v) for v in value)
    )


def _is_bbox(value: Any) -> bool:
    if hasattr(value, "tolist"):
        value = value.tolist()
    return (
        isinstance(value, (tuple, list))
        and len(value) == 4
        and all(_is_number(v) for v in value)
    )


def _check_lon_lat(lon: float, lat: float, name: str) -> None:
    if not (-90 <= lat <= 90):
        raise ValidationError(f"Invalid latitude in '{name}': {lat}")
    if not (-180 <= lon <= 180):
        raise ValidationError(f"Invalid longitude in '{name}': {lon}")


def _check_choice(name: str, value: str, choices: Sequence[str]) -> str:
    if value not in choices:
        raise ValidationError(
            f"'{name}' must be one of {', '.join(choices)}; got '{value}'"
        )
    return value


def _join_choices(name: str, values, choices: Sequence[str]) -> Optional[str]:
    """Validate a subset parameter (e.g. avoid) and join it with '|'."""
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    for value in values:
        _check_choice(name, value, choices)
    return googlemaps.convert.join_list("|", list(values))


def _check_region(name: str, region: Any) -> Optional[str]:
    if is_missing(region):
        return None
    if not isinstance(region, str) or len(region) != 2:
        raise ValidationError(
            f"'{name}' must be a two-character region code; got {region!r}"
        )
    return region.lower()


# ==================== location encoding ====================

def encode_location(location: Any, name: str = "location") -> str:
    """
    Encode one location for a request.

    Args:
        location: (lon, lat) pair, shapely Point, or a place name
        name: Argument name used in error messages

    Returns:
        "lat,lng" for coordinates, the stripped place name otherwise

    Raises:
        ValidationError: On empty strings, wrong types, out-of-range coordinates
    """
    if isinstance(location, Point):
        _check_lon_lat(location.x, location.y, name)
        return googlemaps.convert.latlng((location.y, location.x))

    if isinstance(location, str):
        if not location.strip():
            raise ValidationError(f"'{name}' cannot be an empty string")
        return location.strip()

    if _is_coordinate_pair(location):
        lon, lat = location
        _check_lon_lat(lon, lat, name)
        return googlemaps.convert.latlng((lat, lon))

    raise ValidationError(
        f"'{name}' must be a place name, a (lon, lat) pair or a Point; "
        f"got {location!r}"
    )


def _is_single_location(value: Any) -> bool:
    return isinstance(value, (str, Point)) or _is_coordinate_pair(value)


def encode_locations(locations: Any, name: str = "locations") -> str:
    """
    Encode one or several locations, joined with '|'.

    Mixed lists of place names and coordinates are allowed.
    """
    if _is_single_location(locations):
        return encode_location(locations, name)

    if not isinstance(locations, (list, tuple)) or len(locations) == 0:
        raise ValidationError(f"'{name}' must be a location or a non-empty list of locations")

    return "|".join(encode_location(loc, name) for loc in locations)


def encode_bounds(bounds: Sequence[float], name: str = "bounds") -> str:
    """
    Encode an (xmin, ymin, xmax, ymax) box as 'sw_lat,sw_lng|ne_lat,ne_lng'.

    Raises:
        ValidationError: If the box is not four numbers or is inverted
    """
    if not _is_bbox(bounds):
        raise ValidationError(f"'{name}' must be four numbers (xmin, ymin, xmax, ymax); got {bounds!r}")

    xmin, ymin, xmax, ymax = (float(v) for v in bounds)
    _check_lon_lat(xmin, ymin, name)
    _check_lon_lat(xmax, ymax, name)
    if xmin > xmax or ymin > ymax:
        raise ValidationError(
            f"'{name}' must satisfy xmin <= xmax and ymin <= ymax; got {bounds!r}"
        )

    return googlemaps.convert.bounds({
        "southwest": (ymin, xmin),
        "northeast": (ymax, xmax),
    })


def encode_time(value: Any, name: str, allow_now: bool = False) -> Optional[str]:
    """Encode a datetime or epoch seconds as integer seconds since the epoch."""
    if value is None:
        return None
    if allow_now and value == "now":
        return "now"
    if hasattr(value, "timetuple") or _is_number(value):
        return googlemaps.convert.time(value)
    raise ValidationError(f"'{name}' must be a datetime or epoch seconds; got {value!r}")


def parse_center(center: Any) -> Tuple[float, float]:
    """
    Resolve a static map center to (lon, lat).

    Accepts a (lon, lat) pair, a Point, or a "lat,lng" string.
    """
    if isinstance(center, Point):
        lon, lat = center.x, center.y
    elif _is_coordinate_pair(center):
        lon, lat = float(center[0]), float(center[1])
    elif isinstance(center, str):
        match = re.fullmatch(r"\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*", center)
        if not match:
            raise ValidationError(
                f"'center' must be coordinates to georeference the image; got '{center}'"
            )
        lat, lon = float(match.group(1)), float(match.group(2))
    else:
        raise ValidationError(f"'center' must be a (lon, lat) pair, Point or 'lat,lng' string; got {center!r}")

    _check_lon_lat(lon, lat, "center")
    return lon, lat


def parse_size(size: Any) -> Tuple[int, int]:
    """Resolve a static map size given as (width, height) or 'WxH'."""
    if isinstance(size, str):
        match = re.fullmatch(r"(\d+)x(\d+)", size.strip())
        if not match:
            raise ValidationError(f"'size' must look like '640x640'; got '{size}'")
        size = (int(match.group(1)), int(match.group(2)))

    if (not isinstance(size, (tuple, list)) or len(size) != 2
            or not all(isinstance(v, numbers.Integral) for v in size)):
        raise ValidationError(f"'size' must be (width, height) integers; got {size!r}")

    width, height = int(size[0]), int(size[1])
    for value in (width, height):
        if not (1 <= value <= MAX_STATIC_MAP_SIZE):
            raise ValidationError(
                f"'size' values must be between 1 and {MAX_STATIC_MAP_SIZE}; got {size!r}"
            )
    return width, height


def mask_key(url: str) -> str:
    """Hide the API key in a URL before logging it."""
    return re.sub(r"(key=)[^&]+", r"\1***", url)


def _assemble_url(base_url: str, params: List[Tuple[str, Optional[str]]]) -> str:
    query = [(k, v) for k, v in params if v is not None]
    return f"{base_url}?{urlencode(query, quote_via=quote, safe=_SAFE_CHARS)}"


# ==================== routing parameters ====================

def _routing_params(mode, arrival_time, departure_time, avoid, region,
                    traffic_model, transit_mode, transit_routing_preference,
                    language) -> List[Tuple[str, Optional[str]]]:
    """Validate and encode the parameters shared by directions and matrix."""
    _check_choice("mode", mode, TRAVEL_MODES)

    if arrival_time is not None and departure_time is not None:
        raise ValidationError("'arrival_time' and 'departure_time' cannot both be set")

    if arrival_time is not None and mode != "transit":
        raise ValidationError("'arrival_time' is only supported in transit mode")

    if traffic_model is not None:
        _check_choice("traffic_model", traffic_model, TRAFFIC_MODELS)
        if mode != "driving" or departure_time is None:
            raise ValidationError(
                "'traffic_model' requires driving mode and a 'departure_time'"
            )

    if (transit_mode is not None or transit_routing_preference is not None) and mode != "transit":
        raise ValidationError(
            "'transit_mode' and 'transit_routing_preference' require transit mode"
        )
    if transit_routing_preference is not None:
        _check_choice("transit_routing_preference", transit_routing_preference, TRANSIT_PREFERENCES)

    return [
        ("mode", mode),
        ("avoid", _join_choices("avoid", avoid, AVOID_OPTIONS)),
        ("departure_time", encode_time(departure_time, "departure_time", allow_now=True)),
        ("arrival_time", encode_time(arrival_time, "arrival_time")),
        ("traffic_model", traffic_model),
        ("transit_mode", _join_choices("transit_mode", transit_mode, TRANSIT_MODES)),
        ("transit_routing_preference", transit_routing_preference),
        ("region", _check_region("region", region)),
        ("language", language),
    ]


def build_directions_url(origin: Any,
                         destination: Any,
                         waypoints: Any = None,
                         mode: str = "driving",
                         arrival_time: Any = None,
                         departure_time: Any = None,
                         alternatives: bool = False,
                         avoid: Any = None,
                         region: Optional[str] = None,
                         traffic_model: Optional[str] = None,
                         transit_mode: Any = None,
                         transit_routing_preference: Optional[str] = None,
                         language: Optional[str] = None,
                         key: Optional[str] = None) -> str:
    """
    Build a Directions API request URL.

    Args:
        origin: Single start location
        destination: Single end location
        waypoints: Optional list of intermediate locations (not in transit mode)
        mode: driving, transit, walking or bicycling
        arrival_time: Desired arrival (transit only)
        departure_time: Desired departure, or "now"
        alternatives: Ask for alternative routes
        avoid: Any of tolls, highways, ferries, indoor
        region: Two-character region bias
        traffic_model: best_guess, pessimistic or optimistic
        transit_mode: Any of bus, subway, train, tram, rail
        transit_routing_preference: less_walking or fewer_transfers
        language: Language of the returned instructions
        key: Google APIs key

    Returns:
        Percent-encoded URL

    Raises:
        ValidationError: On any invalid parameter
    """
    if not _is_single_location(origin):
        raise ValidationError(f"'origin' must be a single location; got {origin!r}")
    if not _is_single_location(destination):
        raise ValidationError(f"'destination' must be a single location; got {destination!r}")
    if waypoints is not None and mode == "transit":
        raise ValidationError("'waypoints' are not supported in transit mode")

    routing = _routing_params(
        mode, arrival_time, departure_time, avoid, region,
        traffic_model, transit_mode, transit_routing_preference, language
    )

    params = [
        ("origin", encode_location(origin, "origin")),
        ("destination", encode_location(destination, "destination")),
        ("waypoints", None if waypoints is None else encode_locations(waypoints, "waypoints")),
        ("alternatives", "true" if alternatives else "false"),
    ] + routing + [("key", key or None)]

    return _assemble_url(DIRECTIONS_URL, params)


def build_matrix_url(origins: Any,
                     destinations: Any,
                     mode: str = "driving",
                     arrival_time: Any = None,
                     departure_time: Any = None,
                     avoid: Any = None,
                     region: Optional[str] = None,
                     traffic_model: Optional[str] = None,
                     transit_mode: Any = None,
                     transit_routing_preference: Optional[str] = None,
                     language: Optional[str] = None,
                     key: Optional[str] = None) -> str:
    """Build a Distance Matrix API request URL (see build_directions_url)."""
    routing = _routing_params(
        mode, arrival_time, departure_time, avoid, region,
        traffic_model, transit_mode, transit_routing_preference, language
    )

    params = [
        ("origins", encode_locations(origins, "origins")),
        ("destinations", encode_locations(destinations, "destinations")),
    ] + routing + [("key", key or None)]

    return _assemble_url(DISTANCE_MATRIX_URL, params)


# ==================== geocoding parameters ====================

def _check_addresses(addresses: Any) -> List[Optional[str]]:
    if isinstance(addresses, str) or is_missing(addresses):
        addresses = [addresses]
    elif hasattr(addresses, "tolist"):
        addresses = addresses.tolist()

    if not isinstance(addresses, (list, tuple)) or len(addresses) == 0:
        raise ValidationError("'addresses' must be a string or a non-empty list of strings")

    checked = []
    for i, address in enumerate(addresses):
        if is_missing(address):
            checked.append(None)
        elif isinstance(address, str):
            checked.append(address.strip() or None)
        else:
            raise ValidationError(
                f"'addresses' must contain only strings or missing values; "
                f"element {i} is {address!r}"
            )
    return checked


def _broadcast(name: str, value: Any, n: int) -> List[Any]:
    """Replicate a scalar, or check that a list has length 1 or n."""
    if value is None:
        return [None] * n
    if hasattr(value, "tolist") and not isinstance(value, str):
        value = value.tolist()
    if not isinstance(value, (list, tuple)):
        return [value] * n
    if len(value) == 1:
        return list(value) * n
    if len(value) == n:
        return list(value)
    raise ValidationError(
        f"'{name}' must have length 1 or {n} (the number of addresses); got {len(value)}"
    )


def _broadcast_bounds(bounds: Any, n: int) -> List[Optional[Tuple[float, ...]]]:
    if bounds is None:
        return [None] * n
    if _is_bbox(bounds):
        items = [bounds] * n
    else:
        items = _broadcast("bounds", bounds, n)

    normalized = []
    for box in items:
        if is_missing(box):
            normalized.append(None)
        elif _is_bbox(box):
            encode_bounds(box)
            normalized.append(tuple(float(v) for v in box))
        else:
            raise ValidationError(
                f"'bounds' entries must be four numbers (xmin, ymin, xmax, ymax) or None; got {box!r}"
            )
    return normalized


def normalize_geocode_params(addresses: Any,
                             region: Any = None,
                             postcode: Any = None,
                             bounds: Any = None) -> List[GeocodeQuery]:
    """
    Validate geocoding inputs and align every optional parameter to them.

    Scalars (and length-1 lists) are replicated to the number of addresses;
    lists of the same length are applied element-wise. Empty strings and
    missing values become queries with address=None, which are never sent.

    Returns:
        One GeocodeQuery per input address, in input order

    Raises:
        ValidationError: On malformed addresses or length mismatches
    """
    checked = _check_addresses(addresses)
    n = len(checked)

    regions = [_check_region("region", r) for r in _broadcast("region", region, n)]
    postcodes = [
        None if is_missing(p) or str(p).strip() == "" else str(p).strip()
        for p in _broadcast("postcode", postcode, n)
    ]
    boxes = _broadcast_bounds(bounds, n)

    return [
        GeocodeQuery(
            index=i,
            address=checked[i],
            region=regions[i],
            postcode=postcodes[i],
            bounds=boxes[i],
        )
        for i in range(n)
    ]


def build_geocode_url(query: GeocodeQuery, key: Optional[str] = None) -> str:
    """Build the Geocoding API request URL for one normalized query."""
    if query.is_missing:
        raise ValidationError(f"Address {query.index} is missing; nothing to request")

    params = [
        ("address", query.address),
        ("region", query.region),
        ("components", None if query.postcode is None else f"postal_code:{query.postcode}"),
        ("bounds", None if query.bounds is None else encode_bounds(query.bounds)),
        ("key", key or None),
    ]
    return _assemble_url(GEOCODE_URL, params)


# ==================== static map parameters ====================

def build_static_map_url(center: Any,
                         zoom: int = 10,
                         size: Any = (640, 640),
                         scale: int = 1,
                         maptype: str = "roadmap",
                         format: str = "png",
                         language: Optional[str] = None,
                         region: Optional[str] = None,
                         key: Optional[str] = None) -> str:
    """
    Build a Static Maps API request URL.

    Raises:
        ValidationError: On invalid zoom, size, scale, map type or format
    """
    lon, lat = parse_center(center)

    if isinstance(zoom, bool) or not isinstance(zoom, numbers.Integral) or not (0 <= zoom <= 21):
        raise ValidationError(f"'zoom' must be an integer between 0 and 21; got {zoom!r}")
    if scale not in (1, 2):
        raise ValidationError(f"'scale' must be 1 or 2; got {scale!r}")
    _check_choice("maptype", maptype, MAP_TYPES)
    _check_choice("format", format, IMAGE_FORMATS)
    width, height = parse_size(size)

    params = [
        ("center", googlemaps.convert.latlng((lat, lon))),
        ("zoom", str(int(zoom))),
        ("size", f"{width}x{height}"),
        ("scale", str(scale)),
        ("maptype", maptype),
        ("format", format),
        ("language", language),
        ("region", _check_region("region", region)),
        ("key", key or None),
    ]
    return _assemble_url(STATIC_MAP_URL, params)
