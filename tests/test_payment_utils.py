from datetime import date, timedelta

import pytest

from core.payment_utils import compute_status, derive_member_status, has_access, remaining_amount
from models.models import MembershipStatus, PaymentStatus, SubscriptionMember

TODAY = date(2024, 6, 15)
FUTURE = TODAY + timedelta(days=10)
PAST = TODAY - timedelta(days=1)


def make_member(**overrides) -> SubscriptionMember:
    values = dict(
        user_id="u1",
        mess_id=1,
        subscription_type="full_month",
        joining_date=TODAY - timedelta(days=5),
        expiry_date=FUTURE,
        total_amount_due=2600,
        amount_paid=0,
        is_active=True,
        fee_waived=False,
    )
    values.update(overrides)
    return SubscriptionMember(**values)


@pytest.mark.parametrize("total", [500, 1300, 1500, 2600])
def test_fully_paid_future_expiry_is_success_and_active(total):
    assert compute_status(total, total, FUTURE, True, TODAY) == (PaymentStatus.SUCCESS, MembershipStatus.ACTIVE)


@pytest.mark.parametrize("paid", [1, 500, 1300, 2599])
def test_partial_payment_is_pending(paid):
    assert compute_status(paid, 2600, FUTURE, True, TODAY) == (PaymentStatus.PENDING, MembershipStatus.PENDING)


@pytest.mark.parametrize("paid,total,active", [(0, 2600, True), (2600, 2600, True), (5000, 2600, False), (1300, 2600, True)])
def test_expired_is_always_inactive(paid, total, active):
    payment_status, membership_status = compute_status(paid, total, PAST, active, TODAY)
    assert membership_status == MembershipStatus.INACTIVE
    assert payment_status == PaymentStatus.DUE


def test_overpayment_is_success_not_error():
    assert compute_status(3000, 2600, FUTURE, True, TODAY) == (PaymentStatus.SUCCESS, MembershipStatus.ACTIVE)


def test_nothing_paid_is_due():
    assert compute_status(0, 1300, FUTURE, True, TODAY) == (PaymentStatus.DUE, MembershipStatus.INACTIVE)


def test_zero_total_due_is_settled():
    assert compute_status(0, 0, FUTURE, True, TODAY).payment_status == PaymentStatus.SUCCESS


def test_expiring_today_is_still_live():
    assert compute_status(2600, 2600, TODAY, True, TODAY) == (PaymentStatus.SUCCESS, MembershipStatus.ACTIVE)


def test_no_expiry_date_never_expires():
    assert compute_status(2600, 2600, None, True, TODAY).membership_status == MembershipStatus.ACTIVE


def test_deactivated_member_is_inactive():
    assert compute_status(2600, 2600, FUTURE, False, TODAY).membership_status == MembershipStatus.INACTIVE
    assert compute_status(1300, 2600, FUTURE, False, TODAY) == (PaymentStatus.DUE, MembershipStatus.INACTIVE)


# ============================================================
# Waived (admin-approved at ₹0)
# ============================================================
def test_waived_member_is_usable_without_payment():
    member = make_member(fee_waived=True, total_amount_due=1300)
    assert derive_member_status(member, TODAY) == (PaymentStatus.WAIVED, MembershipStatus.ACTIVE)
    assert remaining_amount(member) == 0
    assert has_access(member, TODAY)


def test_waiver_does_not_satisfy_literal_rule():
    member = make_member(fee_waived=True, total_amount_due=1300)
    literal = compute_status(member.amount_paid, member.total_amount_due, member.expiry_date, member.is_active, TODAY)
    assert literal == (PaymentStatus.DUE, MembershipStatus.INACTIVE)


def test_expiry_wins_over_waiver():
    member = make_member(fee_waived=True, expiry_date=PAST)
    assert derive_member_status(member, TODAY) == (PaymentStatus.DUE, MembershipStatus.INACTIVE)
    assert not has_access(member, TODAY)


def test_deactivation_wins_over_waiver():
    member = make_member(fee_waived=True, is_active=False)
    assert derive_member_status(member, TODAY).membership_status == MembershipStatus.INACTIVE


def test_remaining_amount_never_negative():
    assert remaining_amount(make_member(amount_paid=3000)) == 0
    assert remaining_amount(make_member(amount_paid=1300)) == 1300


def test_partially_paid_member_has_access():
    assert has_access(make_member(amount_paid=1300), TODAY)
    assert not has_access(make_member(amount_paid=0), TODAY)
