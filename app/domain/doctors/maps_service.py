"""Google Maps service - nearby providers, geocoding and distances"""

import logging
from typing import Any, Optional

import httpx

from ...cache import get_geocode_cached, set_geocode_cached
from ...config import GOOGLE_MAPS_API_KEY
from .geo import classify_provider, haversine_km

logger = logging.getLogger(__name__)

MAPS_API_BASE = "https://maps.googleapis.com/maps/api"
DEFAULT_SEARCH_QUERY = "doctor clinic hospital"


class MapsServiceError(Exception):
    """Maps is not configured (503) or Google returned an error (502)"""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class MapsService:
    """Thin async client for the Google Maps web services"""

    def __init__(self):
        self.api_key = GOOGLE_MAPS_API_KEY
        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY not set; location features are disabled")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get(self, path: str, params: dict[str, Any]) -> dict:
        if not self.is_configured():
            raise MapsServiceError("Maps service is not configured", status_code=503)

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{MAPS_API_BASE}{path}", params={**params, "key": self.api_key})
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Google Maps request failed: {path}: {e}")
            raise MapsServiceError("Maps provider error") from e

        status = body.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.error(f"❌ Google Maps {path} returned {status}: {body.get('error_message')}")
            raise MapsServiceError(f"Maps provider error: {status}")
        return body

    async def search_nearby_providers(
        self, latitude: float, longitude: float, radius: int = 10000, type_filter: Optional[str] = None
    ) -> list[dict]:
        """Healthcare places around a point, nearest first"""
        body = await self._get(
            "/place/textsearch/json",
            {
                "query": type_filter or DEFAULT_SEARCH_QUERY,
                "location": f"{latitude},{longitude}",
                "radius": radius,
            },
        )

        providers = []
        for place in body.get("results", []):
            location = (place.get("geometry") or {}).get("location") or {}
            if "lat" not in location or "lng" not in location:
                continue
            providers.append(
                {
                    "name": place.get("name"),
                    "address": place.get("formatted_address"),
                    "latitude": location["lat"],
                    "longitude": location["lng"],
                    "rating": place.get("rating"),
                    "place_id": place.get("place_id"),
                    "distance_km": haversine_km(latitude, longitude, location["lat"], location["lng"]),
                    "provider_type": classify_provider(place.get("name", ""), place.get("types", [])),
                }
            )
        providers.sort(key=lambda p: p["distance_km"])
        logger.info(f"📍 Found {len(providers)} providers near {latitude},{longitude}")
        return providers

    async def geocode_address(self, address: str) -> Optional[dict]:
        """Coordinates for an address, or None when Google has no match"""
        cached = get_geocode_cached(address)
        if cached:
            return cached

        body = await self._get("/geocode/json", {"address": address})
        results = body.get("results") or []
        if not results:
            logger.warning(f"⚠️ No geocoding result for address: {address}")
            return None

        location = results[0]["geometry"]["location"]
        result = {
            "latitude": location["lat"],
            "longitude": location["lng"],
            "formatted_address": results[0].get("formatted_address"),
        }
        set_geocode_cached(address, result)
        return result

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[str]:
        body = await self._get("/geocode/json", {"latlng": f"{latitude},{longitude}"})
        results = body.get("results") or []
        return results[0].get("formatted_address") if results else None

    async def calculate_distance_matrix(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> float:
        """Driving distance in km, or -1 when it cannot be computed"""
        try:
            body = await self._get(
                "/distancematrix/json",
                {
                    "origins": f"{origin_lat},{origin_lng}",
                    "destinations": f"{dest_lat},{dest_lng}",
                    "units": "metric",
                },
            )
            element = body["rows"][0]["elements"][0]
            if element.get("status") != "OK":
                return -1
            return round(element["distance"]["value"] / 1000, 2)
        except (MapsServiceError, KeyError, IndexError) as e:
            logger.error(f"❌ Distance matrix failed: {e}")
            return -1


# Singleton instance
maps_service = MapsService()
