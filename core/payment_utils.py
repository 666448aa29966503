# core/payment_utils.py
from datetime import date
from typing import NamedTuple, Optional

from models.models import MembershipStatus, PaymentStatus, SubscriptionMember


class StatusPair(NamedTuple):
    payment_status: PaymentStatus
    membership_status: MembershipStatus


def compute_status(
    amount_paid: int,
    total_due: int,
    expiry_date: Optional[date],
    is_active: bool,
    today: date,
) -> StatusPair:
    """
    Reconcile what was paid against what is owed.

    Expiry uses a strict comparison: a subscription expiring today is still
    live. A deactivated member with a balance is due even if partly paid.
    """
    remaining = total_due - amount_paid
    is_expired = expiry_date is not None and expiry_date < today

    if is_expired:
        payment_status = PaymentStatus.DUE
    elif remaining <= 0:
        # covers total_due == 0 explicitly: nothing owed means settled
        payment_status = PaymentStatus.SUCCESS
    elif amount_paid > 0 and is_active:
        payment_status = PaymentStatus.PENDING
    else:
        payment_status = PaymentStatus.DUE

    if not is_active or is_expired:
        membership_status = MembershipStatus.INACTIVE
    elif payment_status == PaymentStatus.SUCCESS:
        membership_status = MembershipStatus.ACTIVE
    elif payment_status == PaymentStatus.PENDING:
        membership_status = MembershipStatus.PENDING
    else:
        membership_status = MembershipStatus.INACTIVE

    return StatusPair(payment_status, membership_status)


def derive_member_status(member: SubscriptionMember, today: date) -> StatusPair:
    """
    Status for a stored member, including the admin waiver.

    A waived member is usable while active and unexpired even though nothing
    was paid; expiry and deactivation still take precedence.
    """
    if member.fee_waived and member.is_active and not member.is_expired(today):
        return StatusPair(PaymentStatus.WAIVED, MembershipStatus.ACTIVE)
    return compute_status(
        member.amount_paid,
        member.total_amount_due,
        member.expiry_date,
        member.is_active,
        today,
    )


def remaining_amount(member: SubscriptionMember) -> int:
    if member.fee_waived:
        return 0
    return max(member.total_amount_due - member.amount_paid, 0)


def has_access(member: SubscriptionMember, today: date) -> bool:
    """Active or partially paid members can eat; everyone else cannot."""
    return derive_member_status(member, today).membership_status != MembershipStatus.INACTIVE
