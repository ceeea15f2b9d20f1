"""
Shared fixtures for the mapping tests.

Builds Directions, Distance Matrix and Geocoding XML documents shaped like
the real Google responses, plus small palette PNGs for Static Maps.
Polylines are encoded with googlemaps.convert so stubs stay readable as
plain (lon, lat) coordinates.
"""

from io import BytesIO
from unittest.mock import MagicMock

import googlemaps.convert
import pytest
import requests
from lxml import etree
from PIL import Image


def _text(parent, tag, value):
    node = etree.SubElement(parent, tag)
    node.text = str(value)
    return node


def _value_text(parent, tag, value, text):
    node = etree.SubElement(parent, tag)
    _text(node, "value", value)
    _text(node, "text", text)
    return node


def _latlng(parent, tag, lon, lat):
    node = etree.SubElement(parent, tag)
    _text(node, "lat", lat)
    _text(node, "lng", lon)
    return node


def build_directions(routes, status="OK"):
    """
    routes: list of {"summary": str, "legs": [{"steps": [step, ...],
    "departure": (epoch, zone), "arrival": (epoch, zone)}]}; each step is
    {"coords": [(lon, lat), ...], "distance": m, "duration": s,
    "instructions": html, "mode": "DRIVING"}. Leg totals are the step sums.
    """
    root = etree.Element("DirectionsResponse")
    _text(root, "status", status)

    for route in routes:
        route_node = etree.SubElement(root, "route")
        _text(route_node, "summary", route.get("summary", "Route 1"))

        for leg in route["legs"]:
            leg_node = etree.SubElement(route_node, "leg")
            for step in leg["steps"]:
                step_node = etree.SubElement(leg_node, "step")
                _text(step_node, "travel_mode", step.get("mode", "DRIVING"))
                coords = step["coords"]
                _latlng(step_node, "start_location", *coords[0])
                _latlng(step_node, "end_location", *coords[-1])
                polyline = etree.SubElement(step_node, "polyline")
                _text(polyline, "points", googlemaps.convert.encode_polyline(
                    [(lat, lon) for lon, lat in coords]
                ))
                _value_text(step_node, "duration", step["duration"], f"{step['duration'] // 60} mins")
                _text(step_node, "html_instructions", step.get("instructions", "Continue"))
                _value_text(step_node, "distance", step["distance"], f"{step['distance'] / 1000:.1f} km")

            total_duration = sum(s["duration"] for s in leg["steps"])
            total_distance = sum(s["distance"] for s in leg["steps"])
            _value_text(leg_node, "duration", total_duration, f"{total_duration // 60} mins")
            _value_text(leg_node, "distance", total_distance, f"{total_distance / 1000:.1f} km")

            for tag in ("departure", "arrival"):
                if tag in leg:
                    epoch, zone = leg[tag]
                    node = _value_text(leg_node, f"{tag}_time", epoch, "08:00")
                    _text(node, "time_zone", zone)

            _text(leg_node, "start_address", "Start")
            _text(leg_node, "end_address", "End")

        _text(route_node, "copyrights", "Map data ©2024")

    return root


def build_matrix(cells, n_origins, n_destinations, status="OK"):
    """
    cells: {(i, j): (distance_m, duration_s)} for OK cells; any pair not in
    cells gets status ZERO_RESULTS.
    """
    root = etree.Element("DistanceMatrixResponse")
    _text(root, "status", status)
    for i in range(n_origins):
        _text(root, "origin_address", f"Origin {i}")
    for j in range(n_destinations):
        _text(root, "destination_address", f"Destination {j}")

    for i in range(n_origins):
        row = etree.SubElement(root, "row")
        for j in range(n_destinations):
            element = etree.SubElement(row, "element")
            if (i, j) not in cells:
                _text(element, "status", "ZERO_RESULTS")
                continue
            distance, duration = cells[(i, j)]
            _text(element, "status", "OK")
            _value_text(element, "duration", duration, f"{duration // 60} mins")
            _value_text(element, "distance", distance, f"{distance / 1000:.1f} km")
    return root


def build_geocode(results, status="OK"):
    """
    results: list of {"address": str, "location": (lon, lat),
    "viewport": (xmin, ymin, xmax, ymax), "location_type": str,
    "partial_match": bool}.
    """
    root = etree.Element("GeocodeResponse")
    _text(root, "status", status)

    for result in results:
        node = etree.SubElement(root, "result")
        _text(node, "type", "locality")
        _text(node, "formatted_address", result["address"])
        geometry = etree.SubElement(node, "geometry")
        _latlng(geometry, "location", *result["location"])
        _text(geometry, "location_type", result.get("location_type", "APPROXIMATE"))
        xmin, ymin, xmax, ymax = result["viewport"]
        viewport = etree.SubElement(geometry, "viewport")
        _latlng(viewport, "southwest", xmin, ymin)
        _latlng(viewport, "northeast", xmax, ymax)
        _text(node, "place_id", "ChIJtest")
        if result.get("partial_match"):
            _text(node, "partial_match", "true")
    return root


def build_palette_png(width=4, height=3):
    """Indexed PNG whose pixel (row, col) holds palette index (row + col) % 3."""
    image = Image.new("P", (width, height))
    image.putpalette([255, 0, 0, 0, 255, 0, 0, 0, 255] + [0, 0, 0] * 253)
    image.putdata([(r + c) % 3 for r in range(height) for c in range(width)])
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def http_response(body, content_type="application/xml; charset=UTF-8", status_code=200):
    """Mock requests.Response carrying the given body."""
    if isinstance(body, etree._Element):
        body = etree.tostring(body, xml_declaration=True, encoding="UTF-8")
    response = MagicMock(spec=requests.Response)
    response.content = body
    response.status_code = status_code
    response.headers = {"Content-Type": content_type}
    return response


TEL_AVIV = {
    "address": "Tel Aviv-Yafo, Israel",
    "location": (34.78177, 32.0853),
    "viewport": (34.74252, 32.02925, 34.85198, 32.14629),
    "location_type": "APPROXIMATE",
}

HAIFA = {
    "address": "Haifa, Israel",
    "location": (34.98957, 32.79405),
    "viewport": (34.95584, 32.74967, 35.10571, 32.84399),
    "location_type": "APPROXIMATE",
}


# Single route, two legs, five steps (3 + 2)
TWO_LEG_ROUTE = {
    "summary": "Route 1",
    "legs": [
        {"steps": [
            {"coords": [(34.81127, 31.89277), (34.81200, 31.89400)], "distance": 180, "duration": 40,
             "instructions": "Head <b>north</b> on <b>Herzl St</b>"},
            {"coords": [(34.81200, 31.89400), (34.81500, 31.90000), (34.82000, 31.91000)], "distance": 1900, "duration": 150,
             "instructions": "Turn <b>right</b>"},
            {"coords": [(34.82000, 31.91000), (34.83000, 31.93000)], "distance": 2400, "duration": 180,
             "instructions": "Continue onto <b>Route 40</b><div style=\"font-size:0.9em\">Toll road</div>"},
        ]},
        {"steps": [
            {"coords": [(34.83000, 31.93000), (34.90000, 32.10000)], "distance": 20000, "duration": 900,
             "instructions": "Merge onto <b>Route 2</b>"},
            {"coords": [(34.90000, 32.10000), (34.98957, 32.79405)], "distance": 78000, "duration": 3100,
             "instructions": "Arrive at <b>Haifa</b>"},
        ]},
    ],
}

SHORT_ROUTE = {
    "summary": "Route 6",
    "legs": [
        {"steps": [
            {"coords": [(34.81127, 31.89277), (34.95000, 32.30000), (34.98957, 32.79405)], "distance": 99000, "duration": 4200,
             "instructions": "Take <b>Route 6</b>"},
        ]},
    ],
}


@pytest.fixture
def directions_doc():
    return build_directions([TWO_LEG_ROUTE])


@pytest.fixture
def alternatives_doc():
    return build_directions([TWO_LEG_ROUTE, SHORT_ROUTE])


@pytest.fixture
def make_matrix():
    return build_matrix


@pytest.fixture
def make_geocode():
    return build_geocode


@pytest.fixture
def palette_png():
    return build_palette_png()


@pytest.fixture
def make_response():
    return http_response


@pytest.fixture
def no_sleep(monkeypatch):
    """Replace the rate limiter's sleep and record the requested delays."""
    delays = []
    monkeypatch.setattr("mapsapi.mapping.mapping_rate_limiter.time.sleep", delays.append)
    return delays
