# member_schema.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from core.payment_utils import derive_member_status, remaining_amount
from models.models import Payment, SubscriptionMember
from schemas.payment_schema import CamelModel


# ============================================================
# ✅ Subscription summary (output, statuses recomputed)
# ============================================================
class SubscriptionSummary(CamelModel):
    id: int
    user_id: str
    mess_id: int
    name: Optional[str] = None
    phone: Optional[str] = None
    plan: str
    join_date: date
    expiry_date: Optional[date] = None
    total_amount_due: int
    amount_paid: int
    remaining_amount: int
    payment_type: str
    payment_status: str
    status: str
    is_active: bool
    fee_waived: bool
    last_payment_date: Optional[datetime] = None
    last_payment_amount: Optional[int] = None

    @classmethod
    def from_member(
        cls,
        member: SubscriptionMember,
        today: Optional[date] = None,
        last_payment: Optional[Payment] = None,
    ) -> "SubscriptionSummary":
        payment_status, membership_status = derive_member_status(member, today or date.today())
        user = member.user
        return cls(
            id=member.id,
            user_id=member.user_id,
            mess_id=member.mess_id,
            name=user.name if user else None,
            phone=user.mobile_number if user else None,
            plan=member.subscription_type,
            join_date=member.joining_date,
            expiry_date=member.expiry_date,
            total_amount_due=member.total_amount_due,
            amount_paid=member.amount_paid,
            remaining_amount=remaining_amount(member),
            payment_type=member.payment_type,
            payment_status=payment_status.value,
            status=membership_status.value,
            is_active=member.is_active,
            fee_waived=member.fee_waived,
            last_payment_date=last_payment.payment_date if last_payment else None,
            last_payment_amount=last_payment.amount if last_payment else None,
        )


class MemberListResponse(CamelModel):
    success: bool = True
    members: List[SubscriptionSummary]


class MemberResponse(CamelModel):
    success: bool = True
    member: Optional[SubscriptionSummary] = None


# ============================================================
# ✅ Admin allocate (input)
# ============================================================
class MemberAllocate(CamelModel):
    user_email: EmailStr
    plan: str = Field(..., max_length=30)
    joining_date: date
    payment_amount: int = 0
    total_amount_due: Optional[int] = None
    expiry_date: Optional[date] = None


# ============================================================
# ✅ Admin edit (input); amounts are not bounded by total due
# ============================================================
class MemberUpdate(CamelModel):
    plan: Optional[str] = Field(default=None, max_length=30)
    join_date: Optional[date] = None
    expiry_date: Optional[date] = None
    advance_payment: Optional[int] = None
    total_amount_due: Optional[int] = None
    payment_type: Optional[str] = Field(default=None, max_length=20)
    is_active: Optional[bool] = None
