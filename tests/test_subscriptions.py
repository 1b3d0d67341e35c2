from datetime import datetime, timedelta, timezone
import pytest
from unittest.mock import patch
import crud
import subscriptions
from models import Subscription, User

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
FUTURE = NOW + timedelta(days=10)
PAST = NOW - timedelta(seconds=1)

# Webhook payloads are reconciled against the real clock
LIVE_PERIOD_END = (datetime.now(timezone.utc) + timedelta(days=30)).replace(microsecond=0)


# --- is_premium ---

@pytest.mark.parametrize("status", ["active", "trialing"])
def test_active_status_with_future_period_is_premium(status):
    assert subscriptions.is_premium(status, FUTURE, now=NOW) is True


@pytest.mark.parametrize("status, period_end", [
    ("active", PAST),          # expired but still marked active
    ("active", NOW),           # period end must be strictly in the future
    ("canceled", FUTURE),      # future period but canceled
    ("past_due", FUTURE),
    ("incomplete", FUTURE),
    ("active", None),          # missing timestamp
    (None, FUTURE),
    ("", FUTURE),
])
def test_every_other_combination_is_free(status, period_end):
    assert subscriptions.is_premium(status, period_end, now=NOW) is False
    assert subscriptions.tier_for(status, period_end, now=NOW) == "free"


def test_naive_datetimes_are_treated_as_utc():
    naive_future = FUTURE.replace(tzinfo=None)
    assert subscriptions.is_premium("active", naive_future, now=NOW) is True


def test_epoch_seconds_are_accepted():
    assert subscriptions.is_premium("active", int(FUTURE.timestamp()), now=NOW) is True
    assert subscriptions.is_premium("active", int(PAST.timestamp()), now=NOW) is False


# --- Normalization ---

def _stripe_subscription(**overrides):
    sub = {
        "id": "sub_1",
        "customer": "cus_1",
        "status": "active",
        "current_period_end": int(LIVE_PERIOD_END.timestamp()),
        "cancel_at_period_end": False,
        "metadata": {"user_id": "uid-1"},
        "items": {"data": [{"price": {"id": "price_premium_monthly", "unit_amount": 499,
                                      "recurring": {"interval": "month"}}}]},
    }
    sub.update(overrides)
    return sub


def test_normalize_stripe_subscription():
    data = subscriptions.normalize_stripe_subscription(_stripe_subscription())
    assert data["id"] == "sub_1"
    assert data["customer"] == "cus_1"
    assert data["status"] == "active"
    assert data["current_period_end"] == LIVE_PERIOD_END
    assert data["price_id"] == "price_premium_monthly"
    assert data["user_id"] == "uid-1"


def test_normalize_reads_period_end_from_item():
    sub = _stripe_subscription(current_period_end=None)
    sub["items"]["data"][0]["current_period_end"] = int(LIVE_PERIOD_END.timestamp())
    assert subscriptions.normalize_stripe_subscription(sub)["current_period_end"] == LIVE_PERIOD_END


# --- Reconciliation against the database ---

@pytest.fixture
def stored_user(db_session):
    user = User(id="uid-1", email="one@example.com", subscription_tier="free")
    db_session.add(user)
    db_session.commit()
    return user


def test_subscription_updated_event_upgrades_user(db_session, stored_user):
    event = {"type": "customer.subscription.updated", "data": {"object": _stripe_subscription()}}

    assert subscriptions.apply_stripe_event(db_session, event) is True

    db_session.refresh(stored_user)
    assert stored_user.subscription_tier == "premium"
    assert stored_user.stripe_customer_id == "cus_1"
    assert crud.get_subscription(db_session, "sub_1").status == "active"


def test_subscription_deleted_event_downgrades_user(db_session, stored_user):
    subscriptions.apply_stripe_event(
        db_session, {"type": "customer.subscription.created", "data": {"object": _stripe_subscription()}}
    )
    deleted = _stripe_subscription(status="canceled", metadata={})
    subscriptions.apply_stripe_event(
        db_session, {"type": "customer.subscription.deleted", "data": {"object": deleted}}
    )

    db_session.refresh(stored_user)
    assert stored_user.subscription_tier == "free"
    assert crud.get_subscription(db_session, "sub_1").status == "canceled"


def test_subscription_event_for_unknown_user_is_ignored(db_session):
    event = {"type": "customer.subscription.updated",
             "data": {"object": _stripe_subscription(metadata={}, customer="cus_unknown")}}
    assert subscriptions.apply_stripe_event(db_session, event) is False
    assert db_session.query(Subscription).count() == 0


@patch("subscriptions.billing.retrieve_subscription")
def test_checkout_completed_links_customer_and_subscription(mock_retrieve, db_session, stored_user):
    mock_retrieve.return_value = _stripe_subscription()
    session = {"id": "cs_1", "client_reference_id": "uid-1", "customer": "cus_1",
               "subscription": "sub_1", "metadata": {"user_id": "uid-1"}}

    assert subscriptions.apply_stripe_event(
        db_session, {"type": "checkout.session.completed", "data": {"object": session}}
    ) is True

    mock_retrieve.assert_called_once_with("sub_1")
    db_session.refresh(stored_user)
    assert stored_user.stripe_customer_id == "cus_1"
    assert stored_user.subscription_tier == "premium"


def test_unhandled_event_returns_false(db_session):
    assert subscriptions.apply_stripe_event(db_session, {"type": "charge.refunded", "data": {"object": {}}}) is False


def test_reconcile_expired_subscription(db_session, stored_user):
    db_session.add(Subscription(id="sub_old", user_id="uid-1", status="active",
                                current_period_end=datetime.now(timezone.utc) - timedelta(days=1)))
    stored_user.subscription_tier = "premium"
    db_session.commit()

    assert subscriptions.reconcile_user(db_session, stored_user) is False
    assert stored_user.subscription_tier == "free"


def test_stale_subscription_webhook_keeps_live_premium(db_session, stored_user):
    subscriptions.apply_stripe_event(db_session, {
        "type": "customer.subscription.created",
        "data": {"object": _stripe_subscription(id="sub_active")},
    })
    # An abandoned checkout expires after the live subscription was stored
    subscriptions.apply_stripe_event(db_session, {
        "type": "customer.subscription.updated",
        "data": {"object": _stripe_subscription(id="sub_old", status="incomplete_expired")},
    })

    db_session.refresh(stored_user)
    assert crud.get_subscription(db_session, "sub_old").status == "incomplete_expired"
    assert subscriptions.resolve_premium(db_session, stored_user) is True
    assert stored_user.subscription_tier == "premium"


def test_reconcile_with_only_dead_subscriptions(db_session, stored_user):
    past = datetime.now(timezone.utc) - timedelta(days=1)
    db_session.add_all([
        Subscription(id="sub_a", user_id="uid-1", status="canceled", current_period_end=LIVE_PERIOD_END),
        Subscription(id="sub_b", user_id="uid-1", status="active", current_period_end=past),
    ])
    db_session.commit()

    assert subscriptions.reconcile_user(db_session, stored_user) is False


def test_resolve_premium_defaults_to_free_on_failure(db_session, stored_user, mocker):
    mocker.patch("subscriptions.crud.list_subscriptions", side_effect=RuntimeError("db down"))
    assert subscriptions.resolve_premium(db_session, stored_user) is False
