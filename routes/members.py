# routes/members.py
import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from core.database import get_session
from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.security import ensure_same_mess, get_current_admin, get_current_user
from models.models import PaymentMethod, PaymentType, User
from schemas.member_schema import (
    MemberAllocate,
    MemberListResponse,
    MemberResponse,
    MemberUpdate,
    SubscriptionSummary,
)
from services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["Members"])


def _summary(store: SubscriptionStore, member) -> SubscriptionSummary:
    payments = store.payments_for(member.id)
    return SubscriptionSummary.from_member(member, last_payment=payments[0] if payments else None)


# ----------------------------------------------------------------------
# ✅ My subscription (any user)
# ----------------------------------------------------------------------
@router.get("/me", response_model=MemberResponse)
def get_my_subscription(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if current_user.mess_id is None:
        return MemberResponse(member=None)
    store = SubscriptionStore(session)
    member = store.get(current_user.id, current_user.mess_id)
    return MemberResponse(member=_summary(store, member) if member else None)


# ----------------------------------------------------------------------
# ✅ List members of the admin's mess (statuses recomputed on read)
# ----------------------------------------------------------------------
@router.get("", response_model=MemberListResponse)
def list_members(
    current_admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    store = SubscriptionStore(session)
    members = store.list_for_mess(current_admin.mess_id)
    return MemberListResponse(members=[_summary(store, m) for m in members])


# ----------------------------------------------------------------------
# ✅ Allocate a subscription to an existing user
# ----------------------------------------------------------------------
@router.post("", response_model=MemberResponse)
def allocate_member(
    payload: MemberAllocate,
    current_admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    user = session.exec(select(User).where(User.email == payload.user_email)).first()
    if not user:
        raise NotFoundError("User not found")
    if user.mess_id is not None and user.mess_id != current_admin.mess_id:
        raise AuthorizationError("Not authorized for this mess")
    if payload.payment_amount < 0:
        raise ValidationError("Payment amount cannot be negative")
    if payload.total_amount_due is not None and payload.total_amount_due <= 0:
        raise ValidationError("Invalid total amount due. Please specify the plan amount.")

    store = SubscriptionStore(session)
    if user.mess_id is None:
        user.mess_id = current_admin.mess_id
        session.add(user)

    member = store.create(
        user.id,
        current_admin.mess_id,
        payload.plan,
        payload.joining_date,
        amount_paid=0,
        total_due=payload.total_amount_due,
        expiry_date=payload.expiry_date,
        commit=False,
    )
    member.payment_type = (
        PaymentType.FULL.value
        if payload.payment_amount >= member.total_amount_due
        else PaymentType.ADVANCE.value
    )
    store.record_payment(
        member,
        payload.payment_amount,
        method=PaymentMethod.ADMIN_ALLOCATED.value,
        commit=False,
    )
    session.commit()
    session.refresh(member)
    logger.info(f"✅ Admin {current_admin.id} allocated {member.subscription_type} to user {user.id}")
    return MemberResponse(member=_summary(store, member))


# ----------------------------------------------------------------------
# ✅ Edit (last writer wins)
# ----------------------------------------------------------------------
@router.put("/{member_id}", response_model=MemberResponse)
def update_member(
    member_id: int,
    payload: MemberUpdate,
    current_admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    store = SubscriptionStore(session)
    member = store.get_by_id(member_id)
    ensure_same_mess(current_admin, member.mess_id)

    member = store.update(
        member_id,
        plan=payload.plan,
        join_date=payload.join_date,
        expiry_date=payload.expiry_date,
        amount_paid=payload.advance_payment,
        total_due=payload.total_amount_due,
        payment_type=payload.payment_type,
        is_active=payload.is_active,
    )
    session.refresh(member)
    logger.info(f"✏️ Admin {current_admin.id} updated subscription {member_id}")
    return MemberResponse(member=_summary(store, member))


# ----------------------------------------------------------------------
# ✅ Deactivate (never hard-deleted)
# ----------------------------------------------------------------------
@router.delete("/{member_id}", response_model=MemberResponse)
def deactivate_member(
    member_id: int,
    current_admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    store = SubscriptionStore(session)
    member = store.get_by_id(member_id)
    ensure_same_mess(current_admin, member.mess_id)
    member = store.deactivate(member_id)
    session.refresh(member)
    logger.info(f"🚫 Admin {current_admin.id} deactivated subscription {member_id}")
    return MemberResponse(member=_summary(store, member))
