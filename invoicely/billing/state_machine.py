import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from invoicely.domain.plans import FREE_PLAN_NAME
from invoicely.domain.subscriptions import (
    BillingInterval,
    PaymentConfirmation,
    SubscriptionStatus,
    add_interval,
    utcnow,
)
from invoicely.errors import ConflictError, NotFoundError, ValidationError
from invoicely.extensions import db
from invoicely.models.plan import Plan
from invoicely.models.subscription import Subscription, SubscriptionInvoice
from invoicely.observability.metrics import SUBSCRIPTIONS_LAPSED

logger = logging.getLogger(__name__)


class InvalidStateTransition(Exception):
    pass


@dataclass(frozen=True)
class ConfirmationResult:
    subscription: Optional[Subscription]
    applied: bool
    duplicate: bool = False
    ledger_recorded: bool = False
    mismatch: bool = False


@dataclass(frozen=True)
class UpgradeResult:
    subscription: Subscription
    plan: Plan
    amount: Decimal
    requires_payment: bool


class SubscriptionStateMachine:
    """
    Authoritative subscription state machine.

    Every status change of a Subscription row goes through here. Mutual
    exclusion between concurrent requests is expressed only as database
    operations: the unique tenant index, conditional UPDATEs and the unique
    gateway reference on the ledger.
    """

    @staticmethod
    def get_free_plan() -> Optional[Plan]:
        return Plan.query.filter_by(name=FREE_PLAN_NAME).first()

    @staticmethod
    def get_subscription(tenant_id) -> Optional[Subscription]:
        return Subscription.query.filter_by(user_id=tenant_id).first()

    @staticmethod
    def ensure_default_subscription(tenant_id, now=None) -> Optional[Subscription]:
        """
        Return the tenant's subscription, creating an active Free one on
        first access. Returns None only when no Free plan is seeded.
        """
        subscription = SubscriptionStateMachine.get_subscription(tenant_id)
        if subscription:
            return subscription

        free_plan = SubscriptionStateMachine.get_free_plan()
        if not free_plan:
            logger.error("Free plan not found, cannot bootstrap subscription", extra={"tenant_id": tenant_id})
            return None

        now = now or utcnow()
        subscription = Subscription(
            user_id=tenant_id,
            plan_id=free_plan.id,
            status=SubscriptionStatus.ACTIVE.value,
            interval=BillingInterval.MONTHLY.value,
            current_period_start=now,
            current_period_end=add_interval(now, BillingInterval.MONTHLY),
        )
        db.session.add(subscription)
        try:
            db.session.commit()
            logger.info("Created free plan subscription", extra={"tenant_id": tenant_id})
        except IntegrityError:
            # A concurrent request bootstrapped the same tenant first
            db.session.rollback()
            subscription = SubscriptionStateMachine.get_subscription(tenant_id)
        return subscription

    @staticmethod
    def initiate_upgrade(tenant_id, plan_id, interval="monthly", now=None) -> UpgradeResult:
        """
        Point the tenant's subscription at a new plan.

        Free plans activate immediately. Paid plans leave the row pending
        until a payment confirmation arrives.
        """
        try:
            interval = BillingInterval.parse(interval)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        plan = db.session.get(Plan, str(plan_id)) if plan_id else None
        if not plan:
            raise NotFoundError("Plan not found")

        now = now or utcnow()
        subscription = SubscriptionStateMachine.ensure_default_subscription(tenant_id, now=now)
        if subscription is None:
            subscription = Subscription(user_id=tenant_id, plan_id=plan.id, interval=interval.value)
            db.session.add(subscription)
        elif (
            subscription.is_active
            and not subscription.is_expired(now)
            and subscription.plan is not None
            and not subscription.plan.is_free
        ):
            raise ConflictError(
                "You already have an active subscription. "
                "Please wait until it expires or cancel it first."
            )

        subscription.plan_id = plan.id
        subscription.plan = plan
        subscription.interval = interval.value

        if plan.is_free:
            subscription.status = SubscriptionStatus.ACTIVE.value
            subscription.current_period_start = now
            subscription.current_period_end = add_interval(now, interval)
            subscription.cancel_at_period_end = False
            subscription.canceled_at = None
        else:
            subscription.status = SubscriptionStatus.PENDING.value

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info(
            "Subscription plan change initiated",
            extra={
                "tenant_id": tenant_id,
                "subscription_id": subscription.id,
                "plan": plan.name,
                "interval": interval.value,
                "status": subscription.status,
            },
        )
        amount = plan.price_for(interval.value)
        return UpgradeResult(
            subscription=subscription,
            plan=plan,
            amount=amount,
            requires_payment=not plan.is_free,
        )

    @staticmethod
    def _ledger_entry_exists(reference) -> bool:
        return (
            db.session.query(SubscriptionInvoice.id)
            .filter_by(paystack_invoice_code=reference)
            .first()
            is not None
        )

    @staticmethod
    def confirm_payment(confirmation: PaymentConfirmation) -> ConfirmationResult:
        """
        Apply a gateway-confirmed payment. Safe to call any number of times
        and from both confirmation paths concurrently.

        A payment that does not match the plan its checkout was for is
        logged and reported as ``mismatch`` without touching the row.

        Raises:
            InvalidStateTransition: the subscription does not exist
            SQLAlchemyError: the subscription row could not be updated
        """
        if SubscriptionStateMachine._ledger_entry_exists(confirmation.reference):
            logger.info(
                "Payment already applied",
                extra={"reference": confirmation.reference, "source": confirmation.source.value},
            )
            return ConfirmationResult(
                subscription=db.session.get(Subscription, confirmation.subscription_id),
                applied=False,
                duplicate=True,
            )

        subscription = db.session.get(Subscription, confirmation.subscription_id)
        if not subscription:
            raise InvalidStateTransition(
                f"Subscription {confirmation.subscription_id} not found for payment {confirmation.reference}"
            )

        paid_for = SubscriptionStateMachine._resolve_paid_plan(subscription, confirmation)
        if paid_for is None:
            return ConfirmationResult(subscription=subscription, applied=False, mismatch=True)
        plan, interval = paid_for

        period_start = confirmation.paid_at
        period_end = add_interval(period_start, interval)

        values = {
            Subscription.plan_id: plan.id,
            Subscription.interval: interval.value,
            Subscription.status: SubscriptionStatus.ACTIVE.value,
            Subscription.current_period_start: period_start,
            Subscription.current_period_end: period_end,
            Subscription.cancel_at_period_end: False,
            Subscription.canceled_at: None,
            Subscription.updated_at: utcnow(),
        }
        if confirmation.authorization_code:
            values[Subscription.paystack_authorization_code] = confirmation.authorization_code
        if confirmation.customer_code:
            values[Subscription.paystack_customer_code] = confirmation.customer_code

        try:
            # Never move an active subscription's period end backwards
            updated = (
                Subscription.query
                .filter(
                    Subscription.id == subscription.id,
                    or_(
                        Subscription.status != SubscriptionStatus.ACTIVE.value,
                        Subscription.current_period_end.is_(None),
                        Subscription.current_period_end < period_end,
                    ),
                )
                .update(values, synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(
                "Failed to activate subscription",
                extra={"subscription_id": subscription.id, "reference": confirmation.reference},
            )
            raise

        db.session.refresh(subscription)
        ledger_recorded = SubscriptionStateMachine._record_ledger_entry(subscription, confirmation)

        logger.info(
            "Payment confirmed",
            extra={
                "subscription_id": subscription.id,
                "reference": confirmation.reference,
                "source": confirmation.source.value,
                "applied": bool(updated),
                "ledger_recorded": ledger_recorded,
            },
        )
        return ConfirmationResult(
            subscription=subscription,
            applied=bool(updated),
            ledger_recorded=ledger_recorded,
        )

    @staticmethod
    def _resolve_paid_plan(subscription, confirmation: PaymentConfirmation):
        """
        The plan and interval a payment bought, or None when the payment
        cannot be matched to a plan or does not cover its price.

        The checkout metadata decides, so paying an older checkout link
        grants what that link charged for, not whatever the subscription
        was pointed at afterwards.
        """
        extra = {"reference": confirmation.reference, "subscription_id": subscription.id}
        plan = db.session.get(Plan, str(confirmation.plan_id or subscription.plan_id))
        if plan is None:
            logger.error("Payment references an unknown plan", extra={**extra, "plan_id": confirmation.plan_id})
            return None

        try:
            interval = BillingInterval.parse(confirmation.interval or subscription.interval)
        except ValueError:
            logger.error("Payment carries an unsupported interval", extra={**extra, "interval": confirmation.interval})
            return None

        expected = plan.price_for(interval.value)
        if confirmation.currency != plan.currency or confirmation.amount < expected:
            logger.error(
                "Payment does not cover the plan it was made for",
                extra={
                    **extra,
                    "plan": plan.name,
                    "interval": interval.value,
                    "expected": str(expected),
                    "paid": str(confirmation.amount),
                    "currency": confirmation.currency,
                },
            )
            return None
        return plan, interval

    @staticmethod
    def _record_ledger_entry(subscription, confirmation: PaymentConfirmation) -> bool:
        """
        Append the ledger row. Failure here is not fatal: the subscription
        row is already committed and is the source of truth for access.
        """
        db.session.add(SubscriptionInvoice(
            subscription_id=subscription.id,
            paystack_invoice_code=confirmation.reference,
            amount=confirmation.amount,
            currency=confirmation.currency,
            status="paid",
            source=confirmation.source.value,
            paid_at=confirmation.paid_at,
        ))
        try:
            db.session.commit()
            return True
        except IntegrityError:
            db.session.rollback()
            logger.info(
                "Ledger entry recorded by a concurrent confirmation",
                extra={"reference": confirmation.reference},
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(
                f"Error creating subscription invoice: {e}",
                extra={"reference": confirmation.reference, "subscription_id": subscription.id},
            )
        return False

    @staticmethod
    def cancel_subscription(tenant_id, now=None) -> Subscription:
        """Stop renewal. The subscription stays active until its period ends."""
        subscription = SubscriptionStateMachine.get_subscription(tenant_id)
        if not subscription:
            raise NotFoundError("Subscription not found")

        if not subscription.cancel_at_period_end:
            subscription.cancel_at_period_end = True
            subscription.canceled_at = now or utcnow()
            try:
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise
            logger.info("Subscription set to cancel at period end", extra={"subscription_id": subscription.id})

        return subscription

    @staticmethod
    def lapse_expired_subscriptions(now=None) -> int:
        """
        Move active, renewing subscriptions whose period has ended back to the
        Free plan with a fresh monthly period. Subscriptions flagged
        cancel_at_period_end are left untouched.
        """
        now = now or utcnow()
        free_plan = SubscriptionStateMachine.get_free_plan()
        if not free_plan:
            logger.error("Free plan not found, skipping expired subscription sweep")
            return 0

        expired = [
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.current_period_end < now,
            Subscription.cancel_at_period_end.is_(False),
        ]
        ids = [row.id for row in db.session.query(Subscription.id).filter(*expired).all()]

        lapsed = 0
        for subscription_id in ids:
            # Re-check the guard per row so a payment confirmed meanwhile wins
            lapsed += (
                Subscription.query
                .filter(Subscription.id == subscription_id, *expired)
                .update(
                    {
                        Subscription.plan_id: free_plan.id,
                        Subscription.interval: BillingInterval.MONTHLY.value,
                        Subscription.current_period_start: now,
                        Subscription.current_period_end: add_interval(now, BillingInterval.MONTHLY),
                        Subscription.canceled_at: None,
                        Subscription.updated_at: utcnow(),
                    },
                    synchronize_session=False,
                )
            )
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if lapsed:
            SUBSCRIPTIONS_LAPSED.inc(lapsed)
        logger.info(f"Processed {lapsed} expired subscriptions")
        return lapsed


get_free_plan = SubscriptionStateMachine.get_free_plan
get_subscription = SubscriptionStateMachine.get_subscription
ensure_default_subscription = SubscriptionStateMachine.ensure_default_subscription
initiate_upgrade = SubscriptionStateMachine.initiate_upgrade
confirm_payment = SubscriptionStateMachine.confirm_payment
cancel_subscription = SubscriptionStateMachine.cancel_subscription
lapse_expired_subscriptions = SubscriptionStateMachine.lapse_expired_subscriptions
