"""
Google Maps web services client.

Issues sequential HTTP GET requests against the Directions, Distance
Matrix, Geocoding and Static Maps endpoints and returns the raw parsed
responses. Parsing into layers and rasters lives in mapping_parsers.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests
from lxml import etree

from ..config.config_module import API_KEY_ENV, get_config
from ..config.logger_module import log_error, log_info, log_progress, log_warning
from .mapping_config import ClientConfig
from .mapping_errors import ParseError, TransportError
from .mapping_params import (
    build_directions_url,
    build_geocode_url,
    build_matrix_url,
    build_static_map_url,
    encode_location,
    mask_key,
    normalize_geocode_params,
    parse_center,
    parse_size,
)
from .mapping_rate_limiter import FixedDelayRateLimiter


# Status recorded for a geocode input whose request failed at the network level
TRANSPORT_ERROR = "TRANSPORT_ERROR"

# Width that progress lines pad the input value to
_PROGRESS_WIDTH = 40


@dataclass(frozen=True)
class GeocodeResponse:
    """Raw geocoding result for one input address."""
    index: int
    address: Optional[str]
    document: Optional[Any]
    status: Optional[str]

    @property
    def is_missing(self) -> bool:
        return self.document is None


@dataclass(frozen=True)
class StaticMapResponse:
    """Raw Static Maps image plus the parameters needed to georeference it."""
    content: bytes
    content_type: str
    center: Tuple[float, float]
    zoom: int
    size: Tuple[int, int]
    scale: int
    url: str


class GoogleMapsClient:
    """
    Thin HTTP wrapper around four Google Maps web services.

    Requests run one at a time. Batches (geocoding several addresses)
    pause a fixed delay between successive requests to respect the
    per-minute quota.
    """

    def __init__(self,
                 api_key: str = None,
                 config: ClientConfig = None,
                 session: requests.Session = None):
        """
        Initialize the Google Maps client.

        Args:
            api_key: Google Maps API key (loaded from GOOGLE_MAPS_API_KEY if not provided)
            config: Transport settings (loaded from MAPSAPI_* variables if not provided)
            session: Optional requests session to reuse (used as given;
                the User-Agent header is only set on a session created here)
        """
        self.api_key = api_key or get_config(API_KEY_ENV)
        if not self.api_key:
            log_warning("No Google Maps API key configured; requests are sent without 'key'")

        self.config = config or ClientConfig.from_env()

        self._rate_limiter = FixedDelayRateLimiter(self.config.request_delay)

        if session is None:
            session = requests.Session()
            session.headers.update({
                'User-Agent': self.config.user_agent
            })
        self._session = session

        log_info(
            f"GoogleMapsClient initialized (timeout={self.config.timeout}s, "
            f"delay={self.config.request_delay}s)"
        )

    # ==================== transport helpers ====================

    def _key(self, key: Optional[str]) -> Optional[str]:
        return key or self.api_key or None

    def _quiet(self, quiet: Optional[bool]) -> bool:
        return self.config.quiet if quiet is None else quiet

    def _get(self, url: str, quiet: bool) -> requests.Response:
        """
        Perform one GET with the connect timeout.

        Raises:
            TransportError: On timeouts and connection failures
        """
        if not quiet:
            log_progress(mask_key(url))

        try:
            return self._session.get(url, timeout=(self.config.timeout, None))
        except requests.exceptions.Timeout as e:
            log_error(f"Timeout requesting {mask_key(url)}")
            raise TransportError(
                f"Connection timed out after {self.config.timeout}s"
            ) from e
        except requests.exceptions.RequestException as e:
            log_error(f"Request error for {mask_key(url)}: {e}")
            raise TransportError(f"Request failed: {e}") from e

    def _get_xml(self, url: str, quiet: bool):
        """GET an XML endpoint and return the document root element."""
        response = self._get(url, quiet)
        try:
            return etree.fromstring(response.content)
        except (etree.XMLSyntaxError, ValueError) as e:
            raise ParseError(
                f"Response from {mask_key(url)} is not a valid XML document: {e}"
            ) from e

    @staticmethod
    def _progress(label: Optional[str], status: Optional[str], quiet: bool) -> None:
        if quiet:
            return
        label = "NA" if label is None else label
        dots = "." * max(1, _PROGRESS_WIDTH - len(label))
        log_progress(f"{label}{dots}{status or ''}")

    def get_rate_limit_status(self) -> Dict[str, float]:
        """
        Get transport settings and rate limiter counters.

        Returns:
            Dictionary with timeout, delay, request rate bound and pauses taken
        """
        return {
            "timeout_seconds": self.config.timeout,
            "request_delay_seconds": self._rate_limiter.delay_seconds,
            "max_requests_per_minute": self._rate_limiter.requests_per_minute(),
            "pauses": self._rate_limiter.pauses,
        }

    # ==================== endpoints ====================

    def directions(self,
                   origin: Any,
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
                   key: Optional[str] = None,
                   quiet: Optional[bool] = None):
        """
        Request directions between two locations.

        Returns:
            The DirectionsResponse XML root element

        Raises:
            ValidationError: On invalid parameters (no request is made)
            TransportError: On network failure
            ParseError: If the body is not XML
        """
        quiet = self._quiet(quiet)
        url = build_directions_url(
            origin, destination,
            waypoints=waypoints,
            mode=mode,
            arrival_time=arrival_time,
            departure_time=departure_time,
            alternatives=alternatives,
            avoid=avoid,
            region=region,
            traffic_model=traffic_model,
            transit_mode=transit_mode,
            transit_routing_preference=transit_routing_preference,
            language=language,
            key=self._key(key),
        )

        document = self._get_xml(url, quiet)
        label = f"{encode_location(origin, 'origin')} -> {encode_location(destination, 'destination')}"
        self._progress(label, document.findtext("status"), quiet)
        return document

    def matrix(self,
               origins: Any,
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
               key: Optional[str] = None,
               quiet: Optional[bool] = None):
        """
        Request a distance matrix for all origin/destination pairs.

        Returns:
            The DistanceMatrixResponse XML root element
        """
        quiet = self._quiet(quiet)
        url = build_matrix_url(
            origins, destinations,
            mode=mode,
            arrival_time=arrival_time,
            departure_time=departure_time,
            avoid=avoid,
            region=region,
            traffic_model=traffic_model,
            transit_mode=transit_mode,
            transit_routing_preference=transit_routing_preference,
            language=language,
            key=self._key(key),
        )

        document = self._get_xml(url, quiet)
        self._progress("distance matrix", document.findtext("status"), quiet)
        return document

    def geocode(self,
                addresses: Any,
                region: Any = None,
                postcode: Any = None,
                bounds: Any = None,
                key: Optional[str] = None,
                quiet: Optional[bool] = None) -> List[GeocodeResponse]:
        """
        Geocode one or more addresses, one request per address.

        Missing or empty addresses are not requested and keep a placeholder
        slot. A network failure on one address is logged and recorded with
        status TRANSPORT_ERROR; the batch continues.

        Args:
            addresses: Address string or list of addresses
            region: Region code, or one per address
            postcode: Postal code component filter, or one per address
            bounds: (xmin, ymin, xmax, ymax) viewport bias, or one per address
            key: API key overriding the client's
            quiet: Suppress progress lines

        Returns:
            One GeocodeResponse per input, in input order

        Raises:
            ValidationError: On invalid parameters (before any request)
        """
        quiet = self._quiet(quiet)
        queries = normalize_geocode_params(addresses, region, postcode, bounds)
        key = self._key(key)
        urls = [None if q.is_missing else build_geocode_url(q, key) for q in queries]

        remaining = sum(url is not None for url in urls)
        responses = []

        for query, url in zip(queries, urls):
            if url is None:
                responses.append(GeocodeResponse(query.index, None, None, None))
                self._progress(None, None, quiet)
                continue

            remaining -= 1
            try:
                document = self._get_xml(url, quiet)
                status = document.findtext("status")
            except TransportError as e:
                log_error(f"Failed to geocode '{query.address}': {e}")
                document, status = None, TRANSPORT_ERROR

            if status not in (None, "OK"):
                log_warning(f"Geocoding '{query.address}' returned status {status}")

            responses.append(GeocodeResponse(query.index, query.address, document, status))
            self._progress(query.address, status, quiet)

            self._rate_limiter.pause(remaining)

        return responses

    def static_map(self,
                   center: Any,
                   zoom: int = 10,
                   size: Any = (640, 640),
                   scale: int = 1,
                   maptype: str = "roadmap",
                   format: str = "png",
                   language: Optional[str] = None,
                   region: Optional[str] = None,
                   key: Optional[str] = None,
                   quiet: Optional[bool] = None) -> StaticMapResponse:
        """
        Fetch a Static Maps image.

        Returns:
            StaticMapResponse with the raw bytes and the request geometry
        """
        quiet = self._quiet(quiet)
        url = build_static_map_url(
            center,
            zoom=zoom,
            size=size,
            scale=scale,
            maptype=maptype,
            format=format,
            language=language,
            region=region,
            key=self._key(key),
        )

        response = self._get(url, quiet)
        content_type = response.headers.get("Content-Type", "")
        status = "OK" if content_type.startswith("image/") else f"HTTP {response.status_code}"
        self._progress("static map", status, quiet)

        return StaticMapResponse(
            content=response.content,
            content_type=content_type,
            center=parse_center(center),
            zoom=int(zoom),
            size=parse_size(size),
            scale=scale,
            url=mask_key(url),
        )
