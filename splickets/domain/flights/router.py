"""Flight router - flight offer search and airport autocomplete"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from .amadeus_service import AmadeusError
from .schemas import FlightSearchParams
from .service import FlightService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Flights"])

rate_limit_search = create_rate_limiter(limit=30, window_seconds=60, key_prefix="flight_search")
rate_limit_airports = create_rate_limiter(limit=120, window_seconds=60, key_prefix="airport_search")


def get_flight_service(db: Session = Depends(get_db)) -> FlightService:
    """Dependency injection for FlightService"""
    return FlightService(db)


@router.get("/flights/search")
async def search_flights(
    origin: Optional[str] = Query(None),
    destination: Optional[str] = Query(None),
    departureDate: Optional[str] = Query(None),
    returnDate: Optional[str] = Query(None),
    passengers: Optional[str] = Query(None),
    tripType: Optional[str] = Query(None),
    currency: Optional[str] = Query(None),
    service: FlightService = Depends(get_flight_service),
    _: None = Depends(rate_limit_search),
):
    """Search flight offers; every failure is a 400 with an empty flight list"""
    raw = {
        "origin": origin,
        "destination": destination,
        "departureDate": departureDate,
        "returnDate": returnDate or None,
        "passengers": passengers or 1,
        "tripType": tripType or "return",
        "currency": currency or "USD",
    }
    try:
        params = FlightSearchParams(**raw)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        return JSONResponse(
            status_code=400, content={"message": f"{field}: {first['msg']}", "flights": []}
        )

    try:
        return await service.search(params)
    except AmadeusError as e:
        return JSONResponse(status_code=400, content={"message": str(e), "flights": []})
    except Exception as e:
        logger.error(f"❌ Flight search error: {e}")
        return JSONResponse(
            status_code=400, content={"message": "Failed to search flights", "flights": []}
        )


@router.get("/airports/search")
async def search_airports(
    q: str = Query(""),
    service: FlightService = Depends(get_flight_service),
    _: None = Depends(rate_limit_airports),
):
    return {"airports": await service.search_airports(q)}
