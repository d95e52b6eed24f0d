# backend/utils/geoapify_client.py
import logging

import httpx

from config import settings
from utils.errors import ServiceError

logger = logging.getLogger(__name__)

HTTP_ERROR_MESSAGES = {
    400: "Invalid request to Geoapify API. Please check your search query.",
    401: "Geoapify API authentication failed. Please check your API key.",
    403: "Geoapify API access forbidden. Please check your API key permissions.",
    429: "Geoapify API rate limit exceeded. Please try again later.",
}


class GeoapifyClient:
    def __init__(self):
        self.api_key = settings.GEOAPIFY_API_KEY
        self.base_url = settings.GEOAPIFY_BASE_URL
        self.timeout = httpx.Timeout(10.0, connect=5.0)

    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url)

    def autocomplete(self, query: str, limit: int = 20, country_filter: str = "countrycode:ae") -> list:
        """Raw GeoJSON features for `query`."""
        if not self.api_key:
            raise ServiceError("Geoapify API key not configured. Please set GEOAPIFY_API_KEY in your environment.")
        if not self.base_url:
            raise ServiceError("Geoapify base URL not configured. Please set GEOAPIFY_BASE_URL in your environment.")

        params = {"text": query, "apiKey": self.api_key, "filter": country_filter, "limit": limit}
        headers = {"Accept": "application/json", "Accept-Language": "en"}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(self.base_url, params=params, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"Geoapify connection error for '{query}': {e}")
            raise ServiceError("Unable to connect to Geoapify API. Please try again later.") from e

        if response.status_code >= 400:
            logger.error(f"Geoapify HTTP {response.status_code} for '{query}': {response.text}")
            if response.status_code >= 500:
                message = "Geoapify API is temporarily unavailable. Please try again later."
            else:
                message = HTTP_ERROR_MESSAGES.get(
                    response.status_code,
                    f"Geoapify API returned an error (HTTP {response.status_code}). Please try again later.",
                )
            raise ServiceError(message)

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError("Invalid JSON response from Geoapify API") from e

        return data.get("features") or []


def get_geoapify_client() -> GeoapifyClient:
    return GeoapifyClient()
