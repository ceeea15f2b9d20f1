"""
Response parsers for the Google Maps web services.

Walk the XML documents returned by GoogleMapsClient and extract routes,
route segments, distance matrices, geocoded points and viewports, and
decode Static Maps images into georeferenced palette rasters.

API statuses other than OK are not errors: they yield empty layers,
missing matrix cells, or placeholder rows. A document that does not
match the expected schema raises ParseError.
"""

import math
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Tuple

import googlemaps.convert
import numpy as np
import pandas as pd
from lxml import etree, html
from PIL import Image, UnidentifiedImageError
from pyproj import Transformer
from rasterio.transform import Affine, from_origin
from shapely.geometry import LineString, Point, box

from ..config.logger_module import log_debug, log_warning
from .mapping_assembler import assemble_layer, assemble_matrix
from .mapping_client import GeocodeResponse, StaticMapResponse
from .mapping_errors import ParseError
from .mapping_params import is_missing


ROUTE_COLUMNS = [
    "alternative_id", "summary", "travel_mode", "leg_count",
    "distance_m", "distance_text", "duration_s", "duration_text",
    "departure_time", "arrival_time", "geometry",
]

SEGMENT_COLUMNS = [
    "alternative_id", "leg_id", "segment_id", "summary", "travel_mode",
    "instructions", "distance_m", "distance_text", "duration_s",
    "duration_text", "departure_time", "arrival_time", "geometry",
]

POINT_COLUMNS = [
    "id", "address", "status", "address_google", "location_type",
    "partial_match", "geometry",
]

BOUNDS_COLUMNS = ["id", "address", "status", "geometry"]

# value name -> (element, child, numeric)
MATRIX_VALUES = {
    "distance_m": ("distance", "value", True),
    "distance_text": ("distance", "text", False),
    "duration_s": ("duration", "value", True),
    "duration_text": ("duration", "text", False),
    "duration_in_traffic_s": ("duration_in_traffic", "value", True),
    "duration_in_traffic_text": ("duration_in_traffic", "text", False),
}

# Web Mercator
EARTH_RADIUS_M = 6378137.0
TILE_SIZE_PX = 256
RASTER_CRS = "EPSG:3857"

_TO_MERCATOR = Transformer.from_crs("EPSG:4326", RASTER_CRS, always_xy=True)
_FROM_MERCATOR = Transformer.from_crs(RASTER_CRS, "EPSG:4326", always_xy=True)


@dataclass(frozen=True)
class StaticMapImage:
    """
    Georeferenced Static Maps raster.

    ``data`` holds palette indices (row 0 is the northern edge), ``colors``
    maps each index to a "#rrggbb" string, and ``transform`` maps
    (col, row) pixel coordinates to EPSG:3857 metres.
    """
    data: np.ndarray
    colors: List[str]
    transform: Affine
    crs: str
    bounds: Tuple[float, float, float, float]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    def to_rgb(self) -> np.ndarray:
        """Expand palette indices to an (rows, cols, 3) uint8 array."""
        lut = np.array(
            [[int(c[i:i + 2], 16) for i in (1, 3, 5)] for c in self.colors],
            dtype=np.uint8,
        )
        return lut[self.data]


# ==================== document helpers ====================

def _root(doc: Any, expected: str):
    """Return (root element, status) after checking the document type."""
    if isinstance(doc, str):
        doc = doc.encode("utf-8")
    if isinstance(doc, bytes):
        try:
            doc = etree.fromstring(doc)
        except etree.XMLSyntaxError as e:
            raise ParseError(f"Not a valid XML document: {e}") from e
    if hasattr(doc, "getroot"):
        doc = doc.getroot()
    if not isinstance(doc, etree._Element):
        raise ParseError(f"Expected an XML document, got {type(doc).__name__}")

    if doc.tag != expected:
        raise ParseError(f"Expected a <{expected}> document, got <{doc.tag}>")

    status = doc.findtext("status")
    if status is None:
        raise ParseError(f"<{expected}> document has no <status> element")
    return doc, status


def _number(node, path: str) -> float:
    text = node.findtext(path)
    if text is None:
        raise ParseError(f"Missing <{path}> under <{node.tag}>")
    try:
        return float(text)
    except ValueError:
        raise ParseError(f"<{path}> under <{node.tag}> is not numeric: '{text}'")


def _decode_polyline(step) -> List[Tuple[float, float]]:
    points = step.findtext("polyline/points")
    if points is None:
        raise ParseError(f"<{step.tag}> has no <polyline/points> element")
    return [(p["lng"], p["lat"]) for p in googlemaps.convert.decode_polyline(points)]


def _line(coords: Sequence[Tuple[float, float]]) -> Optional[LineString]:
    if not coords:
        return None
    if len(coords) == 1:
        coords = [coords[0], coords[0]]
    return LineString(coords)


def _drop_repeated(coords: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
    # Consecutive steps share their boundary vertex
    kept = []
    for xy in coords:
        if not kept or kept[-1] != xy:
            kept.append(xy)
    return kept


def _strip_html(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    text = re.sub(r"<div[^>]*>", " ", text)
    plain = html.fragment_fromstring(text, create_parent="span").text_content()
    return " ".join(plain.split())


def _leg_time(leg, name: str) -> Optional[pd.Timestamp]:
    """Transit legs carry departure/arrival times as epoch seconds plus a zone."""
    node = leg.find(name)
    if node is None:
        return None
    stamp = pd.Timestamp(int(_number(node, "value")), unit="s", tz="UTC")
    zone = node.findtext("time_zone")
    return stamp.tz_convert(zone) if zone else stamp


def _step_mode(route) -> Optional[str]:
    return route.findtext("leg/step/travel_mode")


# ==================== directions ====================

def get_routes(doc: Any):
    """
    Extract one line feature per alternative route.

    Distances and durations are summed over the route's legs; the
    geometry concatenates every step polyline in order.

    Args:
        doc: DirectionsResponse document (lxml element, tree or XML bytes)

    Returns:
        GeoDataFrame with ROUTE_COLUMNS in EPSG:4326 (empty if status is not OK)

    Raises:
        ParseError: If the document does not follow the Directions schema
    """
    root, status = _root(doc, "DirectionsResponse")
    if status != "OK":
        log_warning(f"Directions response status is {status}; no routes returned")
        return assemble_layer([], ROUTE_COLUMNS)

    records = []
    for alternative_id, route in enumerate(root.findall("route")):
        legs = route.findall("leg")

        coords = []
        for leg in legs:
            for step in leg.findall("step"):
                coords.extend(_decode_polyline(step))

        records.append({
            "alternative_id": alternative_id,
            "summary": route.findtext("summary"),
            "travel_mode": _step_mode(route),
            "leg_count": len(legs),
            "distance_m": sum(_number(leg, "distance/value") for leg in legs),
            "distance_text": " + ".join(leg.findtext("distance/text") or "" for leg in legs),
            "duration_s": sum(_number(leg, "duration/value") for leg in legs),
            "duration_text": " + ".join(leg.findtext("duration/text") or "" for leg in legs),
            "departure_time": _leg_time(legs[0], "departure_time") if legs else None,
            "arrival_time": _leg_time(legs[-1], "arrival_time") if legs else None,
            "geometry": _line(_drop_repeated(coords)),
        })

    return assemble_layer(records, ROUTE_COLUMNS)


def get_segments(doc: Any):
    """
    Extract one line feature per route step.

    segment_id numbers the steps of each alternative route from 0,
    running across legs.
    """
    root, status = _root(doc, "DirectionsResponse")
    if status != "OK":
        log_warning(f"Directions response status is {status}; no segments returned")
        return assemble_layer([], SEGMENT_COLUMNS)

    records = []
    for alternative_id, route in enumerate(root.findall("route")):
        summary = route.findtext("summary")
        segment_id = 0
        for leg_id, leg in enumerate(route.findall("leg")):
            departure = _leg_time(leg, "departure_time")
            arrival = _leg_time(leg, "arrival_time")
            for step in leg.findall("step"):
                records.append({
                    "alternative_id": alternative_id,
                    "leg_id": leg_id,
                    "segment_id": segment_id,
                    "summary": summary,
                    "travel_mode": step.findtext("travel_mode"),
                    "instructions": _strip_html(step.findtext("html_instructions")),
                    "distance_m": _number(step, "distance/value"),
                    "distance_text": step.findtext("distance/text"),
                    "duration_s": _number(step, "duration/value"),
                    "duration_text": step.findtext("duration/text"),
                    "departure_time": departure,
                    "arrival_time": arrival,
                    "geometry": _line(_decode_polyline(step)),
                })
                segment_id += 1

    return assemble_layer(records, SEGMENT_COLUMNS)


# ==================== distance matrix ====================

def get_matrix(doc: Any, value: str = "distance_m") -> pd.DataFrame:
    """
    Extract an origin x destination table of distances or durations.

    Args:
        doc: DistanceMatrixResponse document
        value: One of MATRIX_VALUES

    Returns:
        DataFrame with one row per origin and one column per destination,
        in request order; cells whose status is not OK are NaN (or None
        for text values). Empty if the response status is not OK.

    Raises:
        ValueError: On an unknown value name
        ParseError: If the document does not follow the Distance Matrix schema
    """
    if value not in MATRIX_VALUES:
        raise ValueError(
            f"value must be one of {', '.join(MATRIX_VALUES)}; got '{value}'"
        )
    element, child, numeric = MATRIX_VALUES[value]

    root, status = _root(doc, "DistanceMatrixResponse")
    if status != "OK":
        log_warning(f"Distance matrix response status is {status}; no values returned")
        return pd.DataFrame()

    rows = root.findall("row")
    n_cols = len(root.findall("destination_address")) or (
        len(rows[0].findall("element")) if rows else 0
    )

    cells = {}
    for i, row in enumerate(rows):
        elements = row.findall("element")
        if len(elements) != n_cols:
            raise ParseError(
                f"Row {i} has {len(elements)} elements, expected {n_cols}"
            )
        for j, cell in enumerate(elements):
            if cell.findtext("status") != "OK":
                continue
            if cell.find(element) is None:
                raise ParseError(
                    f"Element ({i}, {j}) has no <{element}>; "
                    "duration_in_traffic needs a departure_time in the request"
                )
            path = f"{element}/{child}"
            cells[(i, j)] = _number(cell, path) if numeric else cell.findtext(path)

    return assemble_matrix(cells, len(rows), n_cols, numeric=numeric)


# ==================== geocoding ====================

def _as_responses(responses: Any) -> List[GeocodeResponse]:
    """Accept geocode() output, a {address: document} mapping, or documents."""
    if isinstance(responses, dict):
        items = list(responses.items())
    elif isinstance(responses, pd.Series):
        items = list(responses.items())
    elif isinstance(responses, (list, tuple)):
        items = responses
    else:
        items = [(None, responses)]

    normalized = []
    for i, item in enumerate(items):
        if isinstance(item, GeocodeResponse):
            normalized.append(item)
            continue
        if isinstance(item, tuple) and len(item) == 2:
            address, document = item
        else:
            address, document = None, item
        if is_missing(document):
            document = None
        normalized.append(GeocodeResponse(i, address, document, None))
    return normalized


def _geocode_rows(responses: Any, all_results: bool, extract,
                  columns: Sequence[str]) -> List[Dict[str, Any]]:
    records = []
    for response in _as_responses(responses):
        base = dict.fromkeys(columns)
        base.update(id=response.index, address=response.address)

        if response.document is None:
            records.append(dict(base, status=response.status, geometry=None))
            continue

        root, status = _root(response.document, "GeocodeResponse")
        if status != "OK":
            records.append(dict(base, status=status, geometry=None))
            continue

        results = root.findall("result")
        if not all_results:
            results = results[:1]
        for result in results:
            records.append(dict(base, status=status, **extract(result)))
    return records


def _point_fields(result) -> Dict[str, Any]:
    location = result.find("geometry/location")
    if location is None:
        raise ParseError("<result> has no <geometry/location> element")
    return {
        "address_google": result.findtext("formatted_address"),
        "location_type": result.findtext("geometry/location_type"),
        "partial_match": result.findtext("partial_match") == "true",
        "geometry": Point(_number(location, "lng"), _number(location, "lat")),
    }


def _bounds_fields(result) -> Dict[str, Any]:
    viewport = result.find("geometry/viewport")
    if viewport is None:
        raise ParseError("<result> has no <geometry/viewport> element")
    return {
        "geometry": box(
            _number(viewport, "southwest/lng"),
            _number(viewport, "southwest/lat"),
            _number(viewport, "northeast/lng"),
            _number(viewport, "northeast/lat"),
        ),
    }


def get_points(responses: Any, all_results: bool = True):
    """
    Extract geocoded locations as points.

    Every input keeps at least one row: inputs that were missing, failed,
    or returned a status other than OK get a row with an empty geometry.
    Inputs with several candidates get one row per candidate.

    Args:
        responses: geocode() output, a {address: document} mapping, or one document
        all_results: Keep every candidate (False keeps only the first)

    Returns:
        GeoDataFrame with POINT_COLUMNS in EPSG:4326
    """
    return assemble_layer(_geocode_rows(responses, all_results, _point_fields, POINT_COLUMNS), POINT_COLUMNS)


def get_bounds(responses: Any, all_results: bool = True):
    """Extract geocoded viewports as polygons (same rows as get_points)."""
    return assemble_layer(_geocode_rows(responses, all_results, _bounds_fields, BOUNDS_COLUMNS), BOUNDS_COLUMNS)


# ==================== static maps ====================

def mercator_resolution(zoom: int, scale: int = 1) -> float:
    """Metres per image pixel at the equator for a Static Maps zoom level."""
    return 2 * math.pi * EARTH_RADIUS_M / (TILE_SIZE_PX * 2 ** zoom * scale)


def get_static_image(response: StaticMapResponse) -> StaticMapImage:
    """
    Decode a Static Maps image into a georeferenced palette raster.

    Palette images keep their colour table; other images are quantised
    to an adaptive palette of at most 256 colours.

    Raises:
        ParseError: If the payload is not a decodable image
    """
    try:
        image = Image.open(BytesIO(response.content))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ParseError(
            f"Static map response is not an image ({response.content_type}): {e}"
        ) from e

    if image.mode != "P":
        log_debug(f"Quantizing {image.mode} static map to an adaptive palette")
        image = image.convert("RGB").quantize(colors=256)

    data = np.asarray(image, dtype=np.uint8)
    palette = image.getpalette() or []
    colors = [
        "#{:02x}{:02x}{:02x}".format(*palette[i:i + 3])
        for i in range(0, len(palette) - len(palette) % 3, 3)
    ]
    if data.size and int(data.max()) >= len(colors):
        raise ParseError("Static map image references colours outside its palette")

    width, height = image.size
    expected = (response.size[0] * response.scale, response.size[1] * response.scale)
    if (width, height) != expected:
        log_warning(f"Static map is {width}x{height} px, requested {expected[0]}x{expected[1]}")

    res = mercator_resolution(response.zoom, response.scale)
    cx, cy = _TO_MERCATOR.transform(*response.center)
    west = cx - width / 2 * res
    north = cy + height / 2 * res
    transform = from_origin(west, north, res, res)

    bounds = _FROM_MERCATOR.transform_bounds(west, north - height * res, west + width * res, north)

    return StaticMapImage(
        data=data,
        colors=colors,
        transform=transform,
        crs=RASTER_CRS,
        bounds=tuple(bounds),
    )
