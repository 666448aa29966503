from datetime import date, timedelta

import pytest

from core.errors import DuplicateError, NotFoundError, ValidationError
from models.models import MembershipStatus, PaymentStatus, PaymentType
from services.subscription_store import SubscriptionStore


@pytest.fixture(name="store")
def store_fixture(session):
    return SubscriptionStore(session)


def test_create_uses_plan_price_and_duration(store, member_user, mess):
    member = store.create(member_user.id, mess.id, "half_month", date(2024, 1, 1))
    assert member.total_amount_due == 1300
    assert member.expiry_date == date(2024, 1, 16)
    assert member.amount_paid == 0


def test_second_record_for_same_user_and_mess_is_refused(store, member_user, mess, today):
    store.create(member_user.id, mess.id, "full_month", today)
    with pytest.raises(DuplicateError):
        store.create(member_user.id, mess.id, "half_month", today)


def test_create_or_update_keeps_single_record(store, member_user, mess, today):
    first = store.create_or_update(member_user.id, mess.id, "full_month", today, amount_paid=500)
    second = store.create_or_update(member_user.id, mess.id, "half_month", today)
    assert first.id == second.id
    assert second.subscription_type == "half_month"
    assert second.total_amount_due == 1300
    # amount_paid=None keeps what was paid
    assert second.amount_paid == 500
    assert len(store.list_for_mess(mess.id)) == 1


def test_record_payment_appends_ledger_and_updates_cached_status(store, member_user, mess, today):
    member = store.create(member_user.id, mess.id, "full_month", today)
    store.record_payment(member, 1300)
    assert member.payment_status == PaymentStatus.PENDING.value
    assert member.status == MembershipStatus.PENDING.value

    store.record_payment(member, 1300)
    assert member.payment_status == PaymentStatus.SUCCESS.value
    payments = store.payments_for(member.id)
    assert [p.amount for p in payments] == [1300, 1300]
    assert sorted(p.remaining_amount for p in payments) == [0, 1300]


def test_negative_payment_is_rejected(store, member_user, mess, today):
    member = store.create(member_user.id, mess.id, "full_month", today)
    with pytest.raises(ValidationError):
        store.record_payment(member, -1)


def test_admin_update_allows_overpayment(store, member_user, mess, today):
    member = store.create(member_user.id, mess.id, "full_month", today)
    updated = store.update(member.id, amount_paid=3000)
    assert updated.payment_status == PaymentStatus.SUCCESS.value


@pytest.mark.parametrize("kwargs", [{"amount_paid": -10}, {"total_due": 0}, {"total_due": -5}])
def test_admin_update_rejects_invalid_amounts(store, member_user, mess, today, kwargs):
    member = store.create(member_user.id, mess.id, "full_month", today)
    with pytest.raises(ValidationError):
        store.update(member.id, **kwargs)


def test_update_missing_member(store):
    with pytest.raises(NotFoundError):
        store.update(999, amount_paid=10)


def test_deactivate_keeps_record(store, member_user, mess, today):
    member = store.create(member_user.id, mess.id, "full_month", today, amount_paid=2600)
    store.deactivate(member.id)
    assert store.get(member_user.id, mess.id) is not None
    assert member.status == MembershipStatus.INACTIVE.value


def test_refresh_stale_statuses_catches_expiry(store, member_user, mess, today):
    member = store.create(
        member_user.id,
        mess.id,
        "full_month",
        today - timedelta(days=40),
        amount_paid=2600,
        payment_type=PaymentType.FULL.value,
        expiry_date=today + timedelta(days=1),
    )
    assert member.status == MembershipStatus.ACTIVE.value

    assert store.refresh_stale_statuses(today + timedelta(days=2)) == 1
    assert member.status == MembershipStatus.INACTIVE.value
    assert member.payment_status == PaymentStatus.DUE.value
    assert store.refresh_stale_statuses(today + timedelta(days=2)) == 0
