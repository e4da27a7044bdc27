"""Payment setup repository - Database operations for the deposit -> installments record"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import (
    INSTALLMENT_CANCELLED,
    INSTALLMENT_OVERDUE,
    INSTALLMENT_PAID,
    INSTALLMENT_UNPAID,
    Installment,
    PaymentPlan,
    PaymentSetup,
    SETUP_CANCEL_PENDING,
    SETUP_SUBSCRIPTION_FAILED,
    SETUP_SUBSCRIPTION_PENDING,
)


class PaymentSetupRepository:
    """Repository for payment setup database operations"""

    @staticmethod
    def get_by_id(db: Session, setup_id: int) -> Optional[PaymentSetup]:
        return db.query(PaymentSetup).filter(PaymentSetup.id == setup_id).first()

    @staticmethod
    def get_by_payment_intent(db: Session, payment_intent_id: str) -> Optional[PaymentSetup]:
        return (
            db.query(PaymentSetup)
            .filter(PaymentSetup.payment_intent_id == payment_intent_id)
            .first()
        )

    @staticmethod
    def get_by_payment_plan(db: Session, payment_plan_id: int) -> Optional[PaymentSetup]:
        return (
            db.query(PaymentSetup)
            .filter(PaymentSetup.payment_plan_id == payment_plan_id)
            .order_by(PaymentSetup.created_at.desc())
            .first()
        )

    @staticmethod
    def create_setup(db: Session, **setup_data) -> PaymentSetup:
        setup = PaymentSetup(**setup_data)
        db.add(setup)
        db.commit()
        db.refresh(setup)
        return setup

    @staticmethod
    def get_setups_needing_retry(
        db: Session, stale_before: datetime, max_attempts: int
    ) -> list[PaymentSetup]:
        """Setups stuck in subscription_pending, or failed with attempts left"""
        return (
            db.query(PaymentSetup)
            .filter(
                or_(
                    and_(
                        PaymentSetup.status == SETUP_SUBSCRIPTION_PENDING,
                        PaymentSetup.updated_at < stale_before,
                    ),
                    and_(
                        PaymentSetup.status == SETUP_SUBSCRIPTION_FAILED,
                        PaymentSetup.attempts < max_attempts,
                    ),
                )
            )
            .order_by(PaymentSetup.created_at)
            .all()
        )

    @staticmethod
    def get_setups_awaiting_cancel(db: Session) -> list[PaymentSetup]:
        return (
            db.query(PaymentSetup)
            .filter(PaymentSetup.status == SETUP_CANCEL_PENDING)
            .order_by(PaymentSetup.created_at)
            .all()
        )

    @staticmethod
    def get_exhausted_unnotified(db: Session, max_attempts: int) -> list[PaymentSetup]:
        return (
            db.query(PaymentSetup)
            .filter(
                PaymentSetup.status == SETUP_SUBSCRIPTION_FAILED,
                PaymentSetup.attempts >= max_attempts,
                PaymentSetup.failure_notified.is_(False),
            )
            .all()
        )

    @staticmethod
    def get_earliest_unpaid_installment(db: Session, payment_plan_id: int) -> Optional[Installment]:
        return (
            db.query(Installment)
            .filter(
                Installment.payment_plan_id == payment_plan_id,
                Installment.status != INSTALLMENT_PAID,
                Installment.status != INSTALLMENT_CANCELLED,
            )
            .order_by(Installment.due_date)
            .first()
        )

    @staticmethod
    def get_installment_by_invoice(db: Session, invoice_id: str) -> Optional[Installment]:
        return db.query(Installment).filter(Installment.stripe_invoice_id == invoice_id).first()

    @staticmethod
    def count_open_installments(db: Session, payment_plan_id: int) -> int:
        return (
            db.query(Installment)
            .filter(
                Installment.payment_plan_id == payment_plan_id,
                Installment.status.in_([INSTALLMENT_UNPAID, INSTALLMENT_OVERDUE]),
            )
            .count()
        )

    @staticmethod
    def get_plan(db: Session, payment_plan_id: int) -> Optional[PaymentPlan]:
        return db.query(PaymentPlan).filter(PaymentPlan.id == payment_plan_id).first()
