# mechconnect/services/google_maps.py
import logging
from typing import Optional

import googlemaps
from googlemaps.convert import decode_polyline

from ..config import settings
from ..errors import RemoteFailure
from ..models.booking import RouteInfo
from ..models.common import GeoPoint

logger = logging.getLogger(__name__)

class GoogleMapsService:
    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or settings.google_maps_api_key
        self._client = None

    @property
    def client(self) -> googlemaps.Client:
        if self._client is None:
            if not self.api_key:
                raise RemoteFailure("Google Maps API key is not configured")
            try:
                self._client = googlemaps.Client(key=self.api_key)
            except ValueError as e:
                raise RemoteFailure(f"Google Maps API error: {str(e)}")
        return self._client

    def directions(self, origin: GeoPoint, destination: GeoPoint) -> RouteInfo:
        """Driving route between two points, for display only"""
        client = self.client
        try:
            routes = client.directions(origin.as_tuple(), destination.as_tuple(), mode="driving")
        except Exception as e:
            logger.error(f"Google Maps directions failed: {str(e)}")
            raise RemoteFailure(f"Google Maps API error: {str(e)}")

        if not routes:
            raise RemoteFailure("Google Maps API error: no route found")

        route = routes[0]
        leg = route["legs"][0]
        points = decode_polyline(route["overview_polyline"]["points"])
        return RouteInfo(
            distance_km=round(leg["distance"]["value"] / 1000, 1),
            duration_minutes=round(leg["duration"]["value"] / 60, 1),
            points=[GeoPoint(latitude=p["lat"], longitude=p["lng"]) for p in points]
        )

google_maps_service = GoogleMapsService()

def get_maps_service() -> GoogleMapsService:
    return google_maps_service
