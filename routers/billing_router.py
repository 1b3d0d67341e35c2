import json
import logging
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session
import stripe
import billing
import crud
import subscriptions
from database import get_db
from dependencies import get_current_user
from errors import ApiError
from schemas import CheckoutRequest, SubscriptionActionRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["billing"])


def _owned_subscription(user, subscription_id: str):
    """Fetches a subscription from Stripe and checks it belongs to the caller."""
    try:
        subscription = billing.retrieve_subscription(subscription_id)
    except stripe.InvalidRequestError:
        logger.warning(f"Unknown subscription {subscription_id} requested by {user.id}")
        raise ApiError(404, "Subscription not found")
    if not user.stripe_customer_id or billing.field(subscription, "customer") != user.stripe_customer_id:
        raise ApiError(404, "Subscription not found")
    return subscription


@router.post("/checkout")
def create_checkout(body: CheckoutRequest, user=Depends(get_current_user)):
    try:
        session = billing.create_checkout_session(user.id, user.email, body.price_id, user.stripe_customer_id)
    except ValueError as e:
        raise ApiError(500, "No price ID configured", details=str(e))
    except stripe.StripeError as e:
        logger.error("Stripe checkout error", exc_info=True)
        raise ApiError(500, "Failed to create checkout session", details=e.user_message or "Payment provider error")
    return {"url": session.url, "session_id": session.id}


@router.post("/webhook")
async def stripe_webhook(request: Request, stripe_signature: str = Header(None, alias="Stripe-Signature"),
                         db: Session = Depends(get_db)):
    payload = await request.body()
    if not stripe_signature:
        raise ApiError(400, "Missing signature")

    try:
        billing.verify_webhook(payload, stripe_signature)
    except ValueError:
        raise ApiError(400, "Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("Webhook signature verification failed")
        raise ApiError(400, "Invalid signature")

    event = json.loads(payload)
    try:
        applied = subscriptions.apply_stripe_event(db, event)
    except Exception:
        logger.error(f"Webhook handler failed for {event.get('type')}", exc_info=True)
        db.rollback()
        raise ApiError(500, "Webhook handler failed")
    return {"received": True, "applied": applied}


@router.get("/subscription")
def subscription_details(user=Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Current subscription as seen by Stripe. The stored copy is refreshed on
    every read so the user's tier follows the provider.
    """
    if not user.stripe_customer_id:
        subscriptions.resolve_premium(db, user)
        return {"subscription": dict(billing.FREE_PLAN_DETAILS), "tier": user.subscription_tier}

    try:
        found = billing.list_customer_subscriptions(user.stripe_customer_id)
    except stripe.StripeError:
        logger.error("Error fetching subscription details", exc_info=True)
        raise ApiError(502, "Failed to fetch subscription details")

    if not found:
        subscriptions.resolve_premium(db, user)
        return {"subscription": dict(billing.FREE_PLAN_DETAILS), "tier": user.subscription_tier}

    latest = found[0]
    subscriptions.store_stripe_subscription(db, latest, user)
    return {"subscription": billing.describe_subscription(latest), "tier": user.subscription_tier}


@router.post("/cancel")
def cancel_subscription(body: SubscriptionActionRequest, user=Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        _owned_subscription(user, body.subscription_id)
        updated = billing.cancel_at_period_end(body.subscription_id)
    except stripe.StripeError:
        logger.error("Error canceling subscription", exc_info=True)
        raise ApiError(500, "Failed to cancel subscription")

    # Stays premium until the period ends
    subscriptions.store_stripe_subscription(db, updated, user)
    return {"success": True, "subscription": billing.describe_subscription(updated)}


@router.post("/reactivate")
def reactivate_subscription(body: SubscriptionActionRequest, user=Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        _owned_subscription(user, body.subscription_id)
        updated = billing.reactivate(body.subscription_id)
    except stripe.StripeError:
        logger.error("Error reactivating subscription", exc_info=True)
        raise ApiError(500, "Failed to reactivate subscription")

    subscriptions.store_stripe_subscription(db, updated, user)
    return {"success": True, "subscription": billing.describe_subscription(updated)}


@router.post("/portal")
def customer_portal(user=Depends(get_current_user)):
    if not user.stripe_customer_id:
        raise ApiError(404, "No billing account found")
    try:
        session = billing.create_portal_session(user.stripe_customer_id)
    except stripe.StripeError:
        logger.error("Error creating portal session", exc_info=True)
        raise ApiError(500, "Failed to create portal session")
    return {"url": session.url}
