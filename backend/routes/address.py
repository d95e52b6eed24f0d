# backend/routes/address.py
from fastapi import APIRouter, Depends, Query

from schemas.common import ok
from services.address import AddressService
from utils.geoapify_client import GeoapifyClient, get_geoapify_client

router = APIRouter(prefix="/addresses", tags=["Addresses"])


# Public: used by the order form's address autocomplete
@router.get("/search-uae")
def search_uae(
    query: str = Query("", max_length=200),
    limit: int = Query(20, ge=1, le=50),
    client: GeoapifyClient = Depends(get_geoapify_client),
):
    results = AddressService(client).search_uae(query, limit)
    return ok(results, f"{len(results)} address(es) found")
