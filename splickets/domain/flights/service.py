"""Flight service - search recording, Amadeus lookups and payment-plan annotation"""

import logging
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...cache import cache
from ...models import FlightSearch
from ..payment_plans.calculator import calculate_payment_plan
from .amadeus_service import amadeus_service
from .schemas import FlightSearchParams

logger = logging.getLogger(__name__)

AIRPORT_CACHE_SECONDS = 24 * 60 * 60


def with_payment_plan(flight: dict) -> dict:
    """Attach paymentPlanEligible / paymentPlan to an offer; the price is left unchanged"""
    quote = None
    if flight.get("departureTime") and flight.get("price", {}).get("total"):
        quote = calculate_payment_plan(flight["price"]["total"], flight["departureTime"])

    annotated = {**flight, "paymentPlanEligible": bool(quote and quote.eligible)}
    if quote and quote.eligible:
        annotated["paymentPlan"] = {
            "depositAmount": float(quote.deposit_amount),
            "installmentAmount": float(quote.installment_amount),
            "installmentCount": quote.installment_count,
        }
    return annotated


class FlightService:
    """Service layer for flight search"""

    def __init__(self, db: Session):
        self.db = db
        self.amadeus = amadeus_service

    def record_search(self, params: FlightSearchParams) -> int:
        """Persist the search; failures are logged and reported as id 0"""
        try:
            search = FlightSearch(
                user_id=None,
                session_id=f"anon_{int(time.time() * 1000)}",
                origin_iata=params.origin[:3],
                destination_iata=params.destination[:3],
                departure_date=params.departureDate,
                return_date=params.returnDate,
                trip_type=params.tripType,
                passenger_count=params.passengers,
                cabin="Economy",
            )
            self.db.add(search)
            self.db.commit()
            self.db.refresh(search)
            return search.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error saving flight search: {e}")
            return 0

    async def search(self, params: FlightSearchParams) -> dict:
        search_id = self.record_search(params)

        flights = await self.amadeus.search_flights(
            origin=params.origin,
            destination=params.destination,
            departure_date=params.departureDate.isoformat(),
            passengers=params.passengers,
            return_date=params.returnDate.isoformat() if params.returnDate else None,
            trip_type=params.tripType,
            currency=params.currency,
        )
        logger.info(f"✈️ {len(flights)} offers for {params.origin}->{params.destination}")

        return {"searchId": search_id, "flights": [with_payment_plan(f) for f in flights]}

    async def search_airports(self, query: str) -> list[dict]:
        query = (query or "").strip()
        if len(query) < 2:
            return []

        cache_key = f"airports:{query.lower()}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        airports = await self.amadeus.get_airport_suggestions(query)
        if airports:
            cache.set(cache_key, airports, ttl=AIRPORT_CACHE_SECONDS)
        return airports
