"""
Thin adapter over the Stripe SDK. Every call is a single round trip; failures
propagate as ``stripe.StripeError`` for the route layer to convert.
"""
import logging
from datetime import datetime, timezone
import stripe
from config import settings

logger = logging.getLogger(__name__)

stripe.api_key = settings.STRIPE_API_KEY

FREE_PLAN_DETAILS = {
    "id": None,
    "status": "free",
    "currentPeriodEnd": None,
    "trialEnd": None,
    "plan": "Free",
    "price": 0,
    "interval": "month",
    "cancelAtPeriodEnd": False,
}

PLAN_NAMES = {
    "price_premium_monthly": "Premium",
    "price_premium_yearly": "Premium",
}

KNOWN_STATUSES = {"active", "trialing", "past_due", "canceled", "incomplete", "incomplete_expired", "unpaid", "paused"}


def field(obj, name, default=None):
    """Reads a key from a Stripe object or a plain dict (webhook payloads)."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    try:
        return obj[name]
    except (KeyError, TypeError):
        return getattr(obj, name, default)


def to_datetime(epoch_seconds):
    if epoch_seconds is None:
        return None
    return datetime.fromtimestamp(int(epoch_seconds), tz=timezone.utc)


def first_item(subscription):
    items = field(subscription, "items")
    data = field(items, "data") or []
    return data[0] if data else None


def period_end(subscription):
    # Newer API versions carry the period on the subscription item
    value = field(subscription, "current_period_end")
    if value is None:
        value = field(first_item(subscription), "current_period_end")
    return to_datetime(value)


def price_of(subscription):
    return field(first_item(subscription), "price")


def create_checkout_session(user_id: str, email: str, price_id: str = None, customer_id: str = None):
    price = price_id or settings.STRIPE_PREMIUM_PRICE_ID
    if not price:
        raise ValueError("No price ID configured")

    params = {
        "mode": "subscription",
        "line_items": [{"price": price, "quantity": 1}],
        "success_url": f"{settings.APP_URL}/dashboard?payment=success",
        "cancel_url": f"{settings.APP_URL}/dashboard?payment=cancelled",
        "client_reference_id": user_id,
        "metadata": {"user_id": user_id},
        "subscription_data": {"metadata": {"user_id": user_id}},
    }
    if customer_id:
        params["customer"] = customer_id
    else:
        params["customer_email"] = email

    session = stripe.checkout.Session.create(**params)
    logger.info(f"Checkout session {session.id} created for user {user_id}")
    return session


def retrieve_subscription(subscription_id: str):
    return stripe.Subscription.retrieve(subscription_id)


def list_customer_subscriptions(customer_id: str):
    result = stripe.Subscription.list(customer=customer_id, status="all", limit=10)
    return list(field(result, "data") or [])


def cancel_at_period_end(subscription_id: str):
    return stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)


def reactivate(subscription_id: str):
    return stripe.Subscription.modify(subscription_id, cancel_at_period_end=False)


def create_portal_session(customer_id: str):
    return stripe.billing_portal.Session.create(
        customer=customer_id,
        return_url=f"{settings.APP_URL}/dashboard",
    )


def verify_webhook(payload: bytes, signature: str):
    """Raises ``stripe.SignatureVerificationError`` or ``ValueError`` on a bad request."""
    return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)


def describe_subscription(subscription) -> dict:
    price = price_of(subscription)
    price_id = field(price, "id")
    unit_amount = field(price, "unit_amount")
    recurring = field(price, "recurring")
    status = field(subscription, "status")
    trial_end = to_datetime(field(subscription, "trial_end"))
    current_period_end = period_end(subscription)

    return {
        "id": field(subscription, "id"),
        "status": status if status in KNOWN_STATUSES else "unknown",
        "currentPeriodEnd": current_period_end.isoformat() if current_period_end else None,
        "trialEnd": trial_end.isoformat() if trial_end else None,
        "plan": PLAN_NAMES.get(price_id, "Premium"),
        "price": unit_amount / 100 if unit_amount else 0,
        "interval": field(recurring, "interval") or "month",
        "cancelAtPeriodEnd": bool(field(subscription, "cancel_at_period_end")),
    }
