"""Amadeus service - flight offers and airport lookups over the Amadeus REST API"""

import logging
import time
from typing import Optional

import httpx

from ...config import (
    AMADEUS_CLIENT_ID,
    AMADEUS_CLIENT_SECRET,
    AMADEUS_PROD_CLIENT_ID,
    AMADEUS_PROD_CLIENT_SECRET,
)

logger = logging.getLogger(__name__)

AMADEUS_TEST_URL = "https://test.api.amadeus.com"
AMADEUS_PROD_URL = "https://api.amadeus.com"

# Refresh the token this many seconds before Amadeus says it expires
TOKEN_EXPIRY_BUFFER = 60
MAX_OFFERS = 20


class AmadeusError(Exception):
    """Amadeus is not configured or returned an error"""


class AmadeusService:
    """OAuth client-credentials client for Amadeus Self-Service APIs"""

    def __init__(self):
        self.use_production = bool(AMADEUS_PROD_CLIENT_ID and AMADEUS_PROD_CLIENT_SECRET)
        if self.use_production:
            self.client_id = AMADEUS_PROD_CLIENT_ID
            self.client_secret = AMADEUS_PROD_CLIENT_SECRET
            self.base_url = AMADEUS_PROD_URL
        else:
            self.client_id = AMADEUS_CLIENT_ID
            self.client_secret = AMADEUS_CLIENT_SECRET
            self.base_url = AMADEUS_TEST_URL

        self._access_token: Optional[str] = None
        self._expires_at = 0.0

        if not self.is_available():
            logger.warning("Amadeus API credentials not found; flight search will fail until configured")
        else:
            env = "PRODUCTION" if self.use_production else "TEST"
            logger.info(f"Amadeus API configured for {env} environment ({self.base_url})")

    def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def get_access_token(self) -> str:
        if self._access_token and self._expires_at > time.time():
            return self._access_token

        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                f"{self.base_url}/v1/security/oauth2/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
        if response.status_code != 200:
            logger.error(f"❌ Amadeus token request failed: {response.status_code}")
            raise AmadeusError(f"Failed to get access token: {response.status_code}")

        data = response.json()
        self._access_token = data["access_token"]
        self._expires_at = time.time() + int(data.get("expires_in", 0)) - TOKEN_EXPIRY_BUFFER
        return self._access_token

    async def search_flights(
        self,
        origin: str,
        destination: str,
        departure_date: str,
        passengers: int,
        return_date: Optional[str] = None,
        trip_type: str = "return",
        currency: str = "USD",
    ) -> list[dict]:
        if not self.is_available():
            raise AmadeusError(
                "Amadeus API credentials not configured. Please set AMADEUS_CLIENT_ID and "
                "AMADEUS_CLIENT_SECRET environment variables."
            )

        token = await self.get_access_token()
        params = {
            "originLocationCode": origin,
            "destinationLocationCode": destination,
            "departureDate": departure_date,
            "adults": str(passengers),
            "max": str(MAX_OFFERS),
            "currencyCode": currency,
        }
        if return_date and trip_type == "return":
            params["returnDate"] = return_date

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(
                f"{self.base_url}/v2/shopping/flight-offers",
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        if response.status_code != 200:
            logger.error(f"❌ Amadeus flight search failed: {response.status_code} {response.text[:200]}")
            raise AmadeusError(f"Amadeus API error: {response.status_code}")

        return transform_flight_offers(response.json(), origin, destination)

    async def get_airport_suggestions(self, query: str) -> list[dict]:
        """Airports and cities matching a keyword; any failure yields an empty list"""
        if not self.is_available():
            return []

        try:
            token = await self.get_access_token()
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{self.base_url}/v1/reference-data/locations",
                    params={
                        "subType": "AIRPORT,CITY",
                        "keyword": query,
                        "page[limit]": "20",
                        "sort": "analytics.travelers.score",
                        "view": "FULL",
                    },
                    headers={"Authorization": f"Bearer {token}"},
                )
        except (httpx.HTTPError, AmadeusError) as e:
            logger.error(f"❌ Error getting airport suggestions: {e}")
            return []

        if response.status_code != 200:
            logger.error(f"❌ Airport search API error: {response.status_code}")
            return []

        return transform_locations(response.json().get("data") or [])


def _location_names(locations: dict, iata_code: str) -> dict:
    location = locations.get(iata_code) or {}
    return {
        "airportName": location.get("name") or iata_code,
        "cityName": (location.get("address") or {}).get("cityName")
        or location.get("cityCode")
        or iata_code,
    }


def transform_flight_offers(response: dict, origin: str, destination: str) -> list[dict]:
    """Amadeus offers -> enhanced flights with names resolved and display fields computed"""
    dictionaries = response.get("dictionaries") or {}
    locations = dictionaries.get("locations") or {}
    carriers = dictionaries.get("carriers") or {}

    flights = []
    for offer in response.get("data") or []:
        itineraries = []
        for itinerary in offer.get("itineraries") or []:
            segments = []
            for segment in itinerary.get("segments") or []:
                operating = segment.get("operating") or {}
                carrier = operating.get("carrierCode") or segment.get("carrierCode")
                segments.append(
                    {
                        "departure": {
                            **segment["departure"],
                            **_location_names(locations, segment["departure"]["iataCode"]),
                        },
                        "arrival": {
                            **segment["arrival"],
                            **_location_names(locations, segment["arrival"]["iataCode"]),
                        },
                        "carrierCode": segment.get("carrierCode"),
                        "airline": carriers.get(carrier, carrier),
                        "number": segment.get("number"),
                        "aircraft": segment.get("aircraft"),
                        "operating": segment.get("operating"),
                        "duration": segment.get("duration"),
                        "id": segment.get("id"),
                        "numberOfStops": segment.get("numberOfStops", 0),
                    }
                )
            itineraries.append({"duration": itinerary.get("duration"), "segments": segments})

        first_itinerary = itineraries[0] if itineraries else {"segments": [], "duration": None}
        first_segments = first_itinerary["segments"]
        first_segment = first_segments[0] if first_segments else None
        last_segment = first_segments[-1] if first_segments else None

        airlines = []
        for itinerary in itineraries:
            for segment in itinerary["segments"]:
                if segment["airline"] and segment["airline"] not in airlines:
                    airlines.append(segment["airline"])

        traveler_pricings = offer.get("travelerPricings") or []
        fare_details = traveler_pricings[0].get("fareDetailsBySegment", []) if traveler_pricings else []
        price = offer.get("price") or {}

        flights.append(
            {
                "id": offer.get("id"),
                "source": offer.get("source"),
                "lastTicketingDate": offer.get("lastTicketingDate"),
                "numberOfBookableSeats": offer.get("numberOfBookableSeats"),
                "itineraries": itineraries,
                "price": {
                    "currency": price.get("currency"),
                    "total": price.get("total"),
                    "base": price.get("base"),
                },
                "validatingAirlineCodes": offer.get("validatingAirlineCodes", []),
                "airlines": ", ".join(airlines),
                "origin": first_segment["departure"]["cityName"] if first_segment else origin,
                "destination": last_segment["arrival"]["cityName"] if last_segment else destination,
                "departureTime": first_segment["departure"]["at"] if first_segment else None,
                "arrivalTime": last_segment["arrival"]["at"] if last_segment else None,
                "duration": first_itinerary.get("duration") or "PT0H0M",
                "stops": max(0, len(first_segments) - 1),
                "cabin": fare_details[0].get("cabin", "ECONOMY") if fare_details else "ECONOMY",
                "availableSeats": offer.get("numberOfBookableSeats"),
                "numberOfPassengers": len(traveler_pricings),
            }
        )
    return flights


def transform_locations(locations: list[dict]) -> list[dict]:
    airports = []
    for location in locations:
        sub_type = location.get("subType")
        if sub_type == "AIRPORT":
            airports.append(
                {
                    "code": location.get("iataCode"),
                    "name": location.get("name"),
                    "city": (location.get("address") or {}).get("cityName") or location.get("name"),
                }
            )
        elif sub_type == "CITY":
            airports.append(
                {
                    "code": location.get("iataCode"),
                    "name": f"{location.get('name')} - All Airports",
                    "city": location.get("name"),
                }
            )
    return airports


# Global instance
amadeus_service = AmadeusService()
