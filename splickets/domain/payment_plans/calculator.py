"""
Payment plan calculations

Two calculators share the same money rules: amounts are Decimal rounded
half-up to cents, and the final installment absorbs the rounding remainder
so that deposit + sum(installments) == total exactly.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

CENT = Decimal("0.01")

# Eligibility quote
DEPOSIT_PERCENTAGE = Decimal("20")
MINIMUM_ADVANCE_DAYS = 45
MINIMUM_AMOUNT = Decimal("300")
LAST_PAYMENT_BUFFER_DAYS = 5

# Installment builder
DEPOSIT_OPTIONS = (20, 30, 40, 50, 100)
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_BI_WEEKLY = "bi_weekly"
FREQUENCY_MONTHLY = "monthly"
FREQUENCY_DAYS = {FREQUENCY_WEEKLY: 7, FREQUENCY_BI_WEEKLY: 14}
PAYOFF_DAYS_BEFORE_DEPARTURE = 19
LONG_HORIZON_MONTHS = 7
LONG_HORIZON_PAYOFF_MONTHS = 6

Money = Union[Decimal, float, int, str]


class ScheduleMismatchError(ValueError):
    """Deposit plus installments does not add up to the plan total"""


def to_money(value: Money) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


def normalize_frequency(frequency: str) -> str:
    return (frequency or "").strip().lower().replace("-", "_")


def split_remaining(remaining: Decimal, count: int) -> list[Decimal]:
    """Split an amount into `count` cent amounts; the last one takes the remainder"""
    if count < 1:
        raise ValueError("Installment count must be at least 1")
    base = (remaining / count).quantize(CENT, rounding=ROUND_HALF_UP)
    last = remaining - base * (count - 1)
    return [base] * (count - 1) + [last]


def validate_schedule(total: Money, deposit: Money, amounts: list) -> None:
    total = to_money(total)
    deposit = to_money(deposit)
    money_amounts = [to_money(a) for a in amounts]

    if deposit < 0 or any(a <= 0 for a in money_amounts):
        raise ScheduleMismatchError("Installment amounts must be positive")

    scheduled = deposit + sum(money_amounts, Decimal("0"))
    if scheduled != total:
        raise ScheduleMismatchError(
            f"Deposit {deposit} plus installments {scheduled - deposit} does not equal total {total}"
        )


@dataclass
class ScheduledPayment:
    payment_number: int
    due_date: date
    amount: Decimal
    description: str

    def to_dict(self) -> dict:
        return {
            "paymentNumber": self.payment_number,
            "dueDate": self.due_date.isoformat(),
            "amount": float(self.amount),
            "description": self.description,
        }


@dataclass
class PaymentPlanQuote:
    eligible: bool
    reason: Optional[str] = None
    deposit_amount: Optional[Decimal] = None
    installment_amount: Optional[Decimal] = None
    installment_count: Optional[int] = None
    schedule: list[ScheduledPayment] = field(default_factory=list)
    total_amount: Optional[Decimal] = None

    def to_dict(self) -> dict:
        if not self.eligible:
            return {"eligible": False, "reason": self.reason}
        return {
            "eligible": True,
            "depositAmount": float(self.deposit_amount),
            "installmentAmount": float(self.installment_amount),
            "installmentCount": self.installment_count,
            "schedule": [item.to_dict() for item in self.schedule],
            "totalAmount": float(self.total_amount),
        }


def calculate_payment_plan(
    total_amount: Money,
    travel_date: Union[date, datetime, str],
    booking_date: Optional[Union[date, datetime, str]] = None,
) -> PaymentPlanQuote:
    """Eligibility and a deposit + N installment schedule for a flight price"""
    total = to_money(total_amount)
    travel = _as_date(travel_date)
    booked = _as_date(booking_date) if booking_date else date.today()

    if total < MINIMUM_AMOUNT:
        return PaymentPlanQuote(
            eligible=False,
            reason=f"Payment plans are available for bookings of ${MINIMUM_AMOUNT} or more",
        )

    days_until_travel = (travel - booked).days
    if days_until_travel < MINIMUM_ADVANCE_DAYS:
        return PaymentPlanQuote(eligible=False, reason="Travel date too soon for installment payments")

    deposit = to_money(total * DEPOSIT_PERCENTAGE / 100)

    if days_until_travel >= 120:
        installment_count = 4
    elif days_until_travel >= 90:
        installment_count = 3
    else:
        installment_count = 2

    amounts = split_remaining(total - deposit, installment_count)
    validate_schedule(total, deposit, amounts)

    schedule = [ScheduledPayment(1, booked, deposit, "Deposit - Due immediately")]
    days_between = days_until_travel // (installment_count + 1)
    latest_final_date = travel - timedelta(days=LAST_PAYMENT_BUFFER_DAYS)

    for i in range(1, installment_count + 1):
        due = booked + timedelta(days=days_between * i)
        if i == installment_count:
            due = min(due, latest_final_date)
            label = "Final Payment"
        else:
            label = f"Payment {i + 1}"
        schedule.append(
            ScheduledPayment(
                payment_number=i + 1,
                due_date=due,
                amount=amounts[i - 1],
                description=f"{label} - Due {due.strftime('%B')} {due.day}, {due.year}",
            )
        )

    return PaymentPlanQuote(
        eligible=True,
        deposit_amount=deposit,
        installment_amount=amounts[0],
        installment_count=installment_count,
        schedule=schedule,
        total_amount=total,
    )


def is_eligible_for_payment_plan(total_amount: Money, travel_date, booking_date=None) -> bool:
    return calculate_payment_plan(total_amount, travel_date, booking_date).eligible


@dataclass
class InstallmentPlan:
    plan_type: str  # full, installments
    total_amount: Decimal
    deposit_percentage: int
    deposit_amount: Decimal
    frequency: Optional[str]
    payoff_date: Optional[date]
    installments: list[tuple[date, Decimal]] = field(default_factory=list)

    @property
    def installment_count(self) -> int:
        return len(self.installments)

    @property
    def installment_amount(self) -> Optional[Decimal]:
        return self.installments[0][1] if self.installments else None

    def to_dict(self) -> dict:
        return {
            "type": self.plan_type,
            "totalAmount": float(self.total_amount),
            "depositPercentage": self.deposit_percentage,
            "depositAmount": float(self.deposit_amount),
            "frequency": self.frequency,
            "payoffDate": self.payoff_date.isoformat() if self.payoff_date else None,
            "installmentCount": self.installment_count,
            "installmentAmount": float(self.installment_amount) if self.installments else None,
            "installments": [
                {"dueDate": due.isoformat(), "amount": float(amount)}
                for due, amount in self.installments
            ],
        }


def payoff_date_for(departure: date, today: date) -> date:
    """Balance is cleared 19 days before departure, or six months out for far-off trips"""
    if departure > today + relativedelta(months=LONG_HORIZON_MONTHS):
        return today + relativedelta(months=LONG_HORIZON_PAYOFF_MONTHS)
    return departure - timedelta(days=PAYOFF_DAYS_BEFORE_DEPARTURE)


def build_installment_plan(
    total_amount: Money,
    deposit_percentage: int,
    frequency: str,
    departure_date: Union[date, datetime, str],
    today: Optional[Union[date, datetime, str]] = None,
) -> InstallmentPlan:
    """Deposit plus weekly or bi-weekly installments ending before departure"""
    if deposit_percentage not in DEPOSIT_OPTIONS:
        raise ValueError(f"Deposit percentage must be one of {', '.join(map(str, DEPOSIT_OPTIONS))}")

    total = to_money(total_amount)
    if total <= 0:
        raise ValueError("Total amount must be positive")

    departure = _as_date(departure_date)
    start = _as_date(today) if today else date.today()

    if deposit_percentage == 100:
        return InstallmentPlan(
            plan_type="full",
            total_amount=total,
            deposit_percentage=100,
            deposit_amount=total,
            frequency=None,
            payoff_date=None,
        )

    frequency = normalize_frequency(frequency)
    if frequency not in FREQUENCY_DAYS:
        raise ValueError("Frequency must be weekly or bi_weekly")

    deposit = to_money(total * deposit_percentage / 100)
    payoff = payoff_date_for(departure, start)
    weeks_until_payoff = max(1, math.ceil((payoff - start).days / 7))
    count = weeks_until_payoff if frequency == FREQUENCY_WEEKLY else math.ceil(weeks_until_payoff / 2)

    step = FREQUENCY_DAYS[frequency]
    amounts = split_remaining(total - deposit, count)
    validate_schedule(total, deposit, amounts)

    installments = [
        (start + timedelta(days=step * (i + 1)), amount) for i, amount in enumerate(amounts)
    ]

    return InstallmentPlan(
        plan_type="installments",
        total_amount=total,
        deposit_percentage=deposit_percentage,
        deposit_amount=deposit,
        frequency=frequency,
        payoff_date=payoff,
        installments=installments,
    )
