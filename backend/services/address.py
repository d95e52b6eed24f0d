# backend/services/address.py
import logging
from typing import List

from utils.geoapify_client import GeoapifyClient

logger = logging.getLogger(__name__)


def _address_line1(props: dict):
    line = " ".join(p for p in (props.get("housenumber"), props.get("street")) if p)
    return line or props.get("address_line1")


def _address_line2(props: dict):
    parts = [props.get("building")]
    if props.get("apartment"):
        parts.append(f"Apt {props['apartment']}")
    line = " ".join(p for p in parts if p)
    return line or props.get("address_line2")


def map_feature(feature: dict) -> dict:
    props = feature.get("properties") or {}
    area = (
        props.get("suburb") or props.get("district") or props.get("neighbourhood")
        or props.get("quarter") or props.get("city_district")
    )
    return {
        "formatted": props.get("formatted") or area or props.get("city"),
        "address_line1": _address_line1(props),
        "address_line2": _address_line2(props),
        "area": area,
        "city": props.get("city") or props.get("state") or "Dubai",
        "country": props.get("country") or "United Arab Emirates",
    }


class AddressService:
    def __init__(self, client: GeoapifyClient):
        self.client = client

    def search_uae(self, query: str, limit: int = 20) -> List[dict]:
        query = (query or "").strip()
        if not query:
            return []
        features = self.client.autocomplete(query, limit=limit)
        results = [map_feature(f) for f in features]
        logger.info(f"Address search '{query}' returned {len(results)} result(s)")
        return results
