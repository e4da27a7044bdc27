"""
Tests for flight offer transformation, payment-plan annotation and the search endpoints.
"""

from datetime import date, timedelta

import pytest

from splickets import models
from splickets.domain.flights import service as flight_service
from splickets.domain.flights.amadeus_service import transform_flight_offers, transform_locations
from splickets.domain.flights.service import with_payment_plan

DEPARTURE = (date.today() + timedelta(days=130)).isoformat()

AMADEUS_RESPONSE = {
    "data": [
        {
            "id": "1",
            "source": "GDS",
            "numberOfBookableSeats": 4,
            "itineraries": [
                {
                    "duration": "PT11H",
                    "segments": [
                        {
                            "departure": {"iataCode": "LHR", "at": f"{DEPARTURE}T09:00:00"},
                            "arrival": {"iataCode": "DXB", "at": f"{DEPARTURE}T19:00:00"},
                            "carrierCode": "EK",
                            "number": "2",
                        },
                        {
                            "departure": {"iataCode": "DXB", "at": f"{DEPARTURE}T21:00:00"},
                            "arrival": {"iataCode": "JNB", "at": f"{DEPARTURE}T23:55:00"},
                            "carrierCode": "EK",
                            "number": "761",
                            "operating": {"carrierCode": "FZ"},
                        },
                    ],
                }
            ],
            "price": {"currency": "GBP", "total": "900.00", "base": "700.00"},
            "travelerPricings": [{"fareDetailsBySegment": [{"cabin": "PREMIUM_ECONOMY"}]}],
        }
    ],
    "dictionaries": {
        "locations": {
            "LHR": {"cityCode": "LON"},
            "JNB": {"cityCode": "JNB"},
        },
        "carriers": {"EK": "EMIRATES", "FZ": "FLYDUBAI"},
    },
}


class FakeAmadeus:
    def __init__(self, flights=None, airports=None):
        self.flights = flights or []
        self.airports = airports or []
        self.searches = []
        self.airport_queries = []

    async def search_flights(self, **kwargs):
        self.searches.append(kwargs)
        return self.flights

    async def get_airport_suggestions(self, query):
        self.airport_queries.append(query)
        return self.airports


class TestTransformFlightOffers:
    """Test mapping Amadeus offers to the client shape."""

    def test_summary_fields(self):
        flight = transform_flight_offers(AMADEUS_RESPONSE, "LHR", "JNB")[0]

        assert flight["origin"] == "LON"
        assert flight["destination"] == "JNB"
        assert flight["stops"] == 1
        assert flight["cabin"] == "PREMIUM_ECONOMY"
        assert flight["departureTime"] == f"{DEPARTURE}T09:00:00"
        assert flight["price"] == {"currency": "GBP", "total": "900.00", "base": "700.00"}

    def test_operating_carrier_names_the_airline(self):
        flight = transform_flight_offers(AMADEUS_RESPONSE, "LHR", "JNB")[0]
        assert flight["airlines"] == "EMIRATES, FLYDUBAI"

    def test_empty_response(self):
        assert transform_flight_offers({}, "LHR", "JFK") == []

    def test_locations(self):
        airports = transform_locations(
            [
                {"subType": "AIRPORT", "iataCode": "LGW", "name": "GATWICK", "address": {"cityName": "LONDON"}},
                {"subType": "CITY", "iataCode": "LON", "name": "LONDON"},
                {"subType": "POINT_OF_INTEREST", "iataCode": "XXX"},
            ]
        )
        assert airports == [
            {"code": "LGW", "name": "GATWICK", "city": "LONDON"},
            {"code": "LON", "name": "LONDON - All Airports", "city": "LONDON"},
        ]


class TestWithPaymentPlan:
    """Test payment plan annotation on offers."""

    def test_eligible_offer(self):
        flight = transform_flight_offers(AMADEUS_RESPONSE, "LHR", "JNB")[0]
        annotated = with_payment_plan(flight)

        assert annotated["paymentPlanEligible"] is True
        assert annotated["paymentPlan"]["installmentCount"] == 4
        assert annotated["paymentPlan"]["depositAmount"] == 180.0
        assert annotated["price"]["total"] == "900.00"

    def test_cheap_offer_not_eligible(self):
        annotated = with_payment_plan(
            {"departureTime": f"{DEPARTURE}T09:00:00", "price": {"total": "120.00"}}
        )
        assert annotated["paymentPlanEligible"] is False
        assert "paymentPlan" not in annotated


class TestSearchEndpoints:
    """Test /api/flights/search and /api/airports/search."""

    def test_search_records_and_annotates(self, client, db, monkeypatch):
        fake = FakeAmadeus(flights=transform_flight_offers(AMADEUS_RESPONSE, "LHR", "JNB"))
        monkeypatch.setattr(flight_service, "amadeus_service", fake)

        response = client.get(
            "/api/flights/search",
            params={
                "origin": "lhr",
                "destination": "jnb",
                "departureDate": DEPARTURE,
                "passengers": "2",
                "tripType": "one_way",
                "currency": "GBP",
            },
        )

        assert response.status_code == 200
        data = response.json()
        search = db.get(models.FlightSearch, data["searchId"])
        assert search.origin_iata == "LHR"
        assert search.passenger_count == 2
        assert data["flights"][0]["paymentPlanEligible"] is True
        assert fake.searches[0]["return_date"] is None
        assert fake.searches[0]["currency"] == "GBP"

    def test_invalid_parameters(self, client):
        response = client.get("/api/flights/search", params={"origin": "LHR"})

        assert response.status_code == 400
        assert response.json()["flights"] == []

    def test_unconfigured_amadeus(self, client):
        response = client.get(
            "/api/flights/search",
            params={"origin": "LHR", "destination": "JFK", "departureDate": DEPARTURE},
        )

        assert response.status_code == 400
        assert "credentials not configured" in response.json()["message"]

    @pytest.mark.parametrize("query", ["", "L"])
    def test_short_airport_query(self, client, query, monkeypatch):
        fake = FakeAmadeus(airports=[{"code": "LHR"}])
        monkeypatch.setattr(flight_service, "amadeus_service", fake)

        assert client.get("/api/airports/search", params={"q": query}).json() == {"airports": []}
        assert fake.airport_queries == []

    def test_airport_results_cached(self, client, monkeypatch):
        store = {}
        monkeypatch.setattr(flight_service.cache, "get", lambda key: store.get(key))
        monkeypatch.setattr(
            flight_service.cache, "set", lambda key, value, ttl=None: store.__setitem__(key, value)
        )
        fake = FakeAmadeus(airports=[{"code": "LHR", "name": "HEATHROW", "city": "LONDON"}])
        monkeypatch.setattr(flight_service, "amadeus_service", fake)

        first = client.get("/api/airports/search", params={"q": "Lon"}).json()
        second = client.get("/api/airports/search", params={"q": "lon"}).json()

        assert first == second == {"airports": [{"code": "LHR", "name": "HEATHROW", "city": "LONDON"}]}
        assert fake.airport_queries == ["Lon"]
        assert "airports:lon" in store
