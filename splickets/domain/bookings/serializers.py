"""JSON shapes for bookings, flights and payment plans"""

from typing import Optional

from ...models import Booking, Flight, Installment, PaymentPlan


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_installment(installment: Installment) -> dict:
    return {
        "id": installment.id,
        "dueDate": _iso(installment.due_date),
        "amount": _money(installment.amount),
        "currency": installment.currency,
        "status": installment.status,
        "paidAt": _iso(installment.paid_at),
    }


def serialize_payment_plan(plan: Optional[PaymentPlan], with_installments: bool = False) -> Optional[dict]:
    if plan is None:
        return None
    data = {
        "id": plan.id,
        "type": plan.type,
        "depositAmount": _money(plan.deposit_amount),
        "installmentCount": plan.installment_count,
        "installmentFrequency": plan.installment_frequency,
        "totalAmount": _money(plan.total_amount),
        "currency": plan.currency,
        "status": plan.status,
        "createdAt": _iso(plan.created_at),
    }
    if with_installments:
        data["installments"] = [serialize_installment(i) for i in plan.installments]
    return data


def serialize_flight(flight: Optional[Flight]) -> Optional[dict]:
    if flight is None:
        return None
    return {
        "id": flight.id,
        "flightOffer": flight.flight_offer,
        "originIata": flight.origin_iata,
        "destinationIata": flight.destination_iata,
        "departureDate": _iso(flight.departure_date),
        "returnDate": _iso(flight.return_date),
        "tripType": flight.trip_type,
        "passengerCount": flight.passenger_count,
        "cabin": flight.cabin,
    }


def serialize_booking(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "reference": booking.reference,
        "status": booking.status,
        "totalPrice": _money(booking.total_price),
        "currency": booking.currency,
        "passengers": booking.passengers,
        "paymentIntentId": booking.payment_intent_id,
        "createdAt": _iso(booking.created_at),
        "flight": serialize_flight(booking.flight),
        "paymentPlan": serialize_payment_plan(booking.payment_plan),
    }
