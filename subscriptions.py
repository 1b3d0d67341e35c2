"""
Reconciles the billing provider's subscription state with the stored user.

The provider owns subscription state; the ``subscriptions`` table and the
user's ``subscription_tier`` are caches refreshed on webhook receipt or on
read. Premium means an active-like status AND a period end strictly in the
future.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union
from sqlalchemy.orm import Session
import billing
import crud
from models import User

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"active", "trialing"})


def _as_utc(value: Union[datetime, int, float, None]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if value.tzinfo is None:
        # SQLite drops tzinfo; everything is stored in UTC
        return value.replace(tzinfo=timezone.utc)
    return value


def is_premium(status: Optional[str], current_period_end, now: Optional[datetime] = None) -> bool:
    if not status or status not in ACTIVE_STATUSES:
        return False
    period_end = _as_utc(current_period_end)
    if period_end is None:
        return False
    now = _as_utc(now) or datetime.now(timezone.utc)
    return period_end > now


def tier_for(status: Optional[str], current_period_end, now: Optional[datetime] = None) -> str:
    return "premium" if is_premium(status, current_period_end, now) else "free"


def normalize_stripe_subscription(obj) -> dict:
    price = billing.price_of(obj)
    metadata = billing.field(obj, "metadata") or {}
    return {
        "id": billing.field(obj, "id"),
        "customer": billing.field(obj, "customer"),
        "status": billing.field(obj, "status"),
        "current_period_end": billing.period_end(obj),
        "cancel_at_period_end": bool(billing.field(obj, "cancel_at_period_end")),
        "price_id": billing.field(price, "id"),
        "user_id": billing.field(metadata, "user_id"),
    }


def reconcile_user(db: Session, user: User, now: Optional[datetime] = None) -> bool:
    # A stale row for a dead subscription must not mask a live one
    premium = any(
        is_premium(s.status, s.current_period_end, now)
        for s in crud.list_subscriptions(db, user.id)
    )
    crud.set_user_tier(db, user, "premium" if premium else "free")
    return premium


def resolve_premium(db: Session, user: User) -> bool:
    """Entitlement read path. A failed read counts as the free tier."""
    try:
        return reconcile_user(db, user)
    except Exception:
        logger.error(f"Premium check failed for user {user.id}", exc_info=True)
        db.rollback()
        return False


def store_stripe_subscription(db: Session, obj, user: Optional[User] = None) -> Optional[User]:
    data = normalize_stripe_subscription(obj)
    if user is None and data["user_id"]:
        user = crud.get_user(db, data["user_id"])
    if user is None and data["customer"]:
        user = crud.get_user_by_customer(db, data["customer"])
    if user is None:
        logger.warning(f"No user found for subscription {data['id']} (customer {data['customer']})")
        return None

    if data["customer"] and user.stripe_customer_id != data["customer"]:
        crud.link_stripe_customer(db, user, data["customer"])

    crud.upsert_subscription(db, user.id, data)
    reconcile_user(db, user)
    return user


def _handle_checkout_completed(db: Session, session) -> bool:
    metadata = billing.field(session, "metadata") or {}
    user_id = billing.field(metadata, "user_id") or billing.field(session, "client_reference_id")
    user = crud.get_user(db, user_id) if user_id else None
    if user is None:
        logger.warning(f"Checkout session {billing.field(session, 'id')} has no known user")
        return False

    customer_id = billing.field(session, "customer")
    if customer_id:
        crud.link_stripe_customer(db, user, customer_id)

    subscription_id = billing.field(session, "subscription")
    if subscription_id:
        store_stripe_subscription(db, billing.retrieve_subscription(subscription_id), user)
    logger.info(f"Checkout completed for user {user.id}")
    return True


def apply_stripe_event(db: Session, event: dict) -> bool:
    """Applies one webhook event. Returns False for events that change nothing."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        return _handle_checkout_completed(db, obj)

    if event_type in ("customer.subscription.created",
                      "customer.subscription.updated",
                      "customer.subscription.deleted"):
        return store_stripe_subscription(db, obj) is not None

    if event_type == "invoice.payment_failed":
        logger.warning(f"Payment failed for customer {obj.get('customer')}")
        return False

    logger.info(f"Unhandled event type: {event_type}")
    return False
