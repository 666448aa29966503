# mess_backend/models.py
from typing import Optional, List
from datetime import datetime, date, timezone
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# ENUMS
# ============================================================
class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class PaymentStatus(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    DUE = "due"
    WAIVED = "waived"  # admin-approved at ₹0


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class PaymentType(str, Enum):
    FULL = "full"
    ADVANCE = "advance"


class PendingPaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    PHONEPE = "phonepe"
    ADMIN_ALLOCATED = "admin_allocated"
    ADMIN_APPROVED = "admin_approved"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ============================================================
# MESS (tenant)
# ============================================================
class Mess(SQLModel, table=True):
    __tablename__ = "mess"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)

    users: List["User"] = Relationship(back_populates="mess")
    members: List["SubscriptionMember"] = Relationship(back_populates="mess")


# ============================================================
# USER (id comes from the identity provider)
# ============================================================
class User(SQLModel, table=True):
    __tablename__ = "user"

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=100)
    email: Optional[str] = Field(default=None, index=True, max_length=100)
    mobile_number: Optional[str] = Field(default=None, max_length=20)
    parent_mobile: Optional[str] = Field(default=None, max_length=20)

    role: str = Field(default=UserRole.USER.value, max_length=20, index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    mess_id: Optional[int] = Field(default=None, foreign_key="mess.id", index=True)
    mess: Optional["Mess"] = Relationship(back_populates="users")

    memberships: List["SubscriptionMember"] = Relationship(back_populates="user")

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


# ============================================================
# SUBSCRIPTION MEMBER (one per user per mess)
# ============================================================
class SubscriptionMember(SQLModel, table=True):
    __tablename__ = "mess_member"
    __table_args__ = (UniqueConstraint("user_id", "mess_id", name="uq_member_user_mess"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="user.id", nullable=False, index=True)
    mess_id: int = Field(foreign_key="mess.id", nullable=False, index=True)

    subscription_type: str = Field(max_length=30)
    joining_date: date
    expiry_date: Optional[date] = None

    total_amount_due: int = Field(default=0)
    amount_paid: int = Field(default=0)
    payment_type: str = Field(default=PaymentType.FULL.value, max_length=20)

    is_active: bool = Field(default=True)
    fee_waived: bool = Field(default=False, description="Admin approved access without payment")

    # Cached for list filtering only; recomputed on every read
    payment_status: str = Field(default=PaymentStatus.DUE.value, max_length=20, index=True)
    status: str = Field(default=MembershipStatus.INACTIVE.value, max_length=20, index=True)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    user: Optional["User"] = Relationship(back_populates="memberships")
    mess: Optional["Mess"] = Relationship(back_populates="members")
    payments: List["Payment"] = Relationship(back_populates="member")

    def is_expired(self, today: date) -> bool:
        return self.expiry_date is not None and self.expiry_date < today


# ============================================================
# PENDING PAYMENT (checkout awaiting gateway confirmation)
# ============================================================
class PendingPayment(SQLModel, table=True):
    __tablename__ = "pending_payment"

    id: Optional[int] = Field(default=None, primary_key=True)
    merchant_transaction_id: str = Field(max_length=64, unique=True, index=True, nullable=False)
    gateway_transaction_id: Optional[str] = Field(default=None, max_length=128)

    user_id: str = Field(foreign_key="user.id", nullable=False, index=True)
    mess_id: int = Field(foreign_key="mess.id", nullable=False, index=True)

    amount: int
    subscription_type: str = Field(max_length=30)
    payment_type: str = Field(default=PaymentType.FULL.value, max_length=20)
    join_date: date
    # Set when the checkout was a balance payment on a live membership
    is_top_up: bool = Field(default=False)
    member_id: Optional[int] = Field(default=None, foreign_key="mess_member.id")

    status: str = Field(default=PendingPaymentStatus.PENDING.value, max_length=20, index=True)
    gateway_code: Optional[str] = Field(default=None, max_length=64)

    created_at: datetime = Field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None


# ============================================================
# PAYMENT (append-only ledger)
# ============================================================
class Payment(SQLModel, table=True):
    __tablename__ = "payment"

    id: Optional[int] = Field(default=None, primary_key=True)
    member_id: int = Field(foreign_key="mess_member.id", nullable=False, index=True)
    user_id: str = Field(foreign_key="user.id", nullable=False, index=True)
    mess_id: int = Field(foreign_key="mess.id", nullable=False, index=True)

    amount: int
    status: str = Field(default=PendingPaymentStatus.SUCCESS.value, max_length=20)
    payment_method: str = Field(default=PaymentMethod.PHONEPE.value, max_length=30)
    transaction_id: str = Field(max_length=64, unique=True, index=True)
    is_advance: bool = Field(default=False)
    remaining_amount: int = Field(default=0)

    payment_date: datetime = Field(default_factory=utc_now, index=True)

    member: Optional["SubscriptionMember"] = Relationship(back_populates="payments")


# ============================================================
# SUBSCRIPTION REQUEST (admin-granted access)
# ============================================================
class SubscriptionRequest(SQLModel, table=True):
    __tablename__ = "subscription_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="user.id", nullable=False, index=True)
    mess_id: int = Field(foreign_key="mess.id", nullable=False, index=True)

    requested_plan: str = Field(max_length=30)
    requested_join_date: date
    request_message: Optional[str] = Field(default=None, max_length=1000)

    status: str = Field(default=RequestStatus.PENDING.value, max_length=20, index=True)
    admin_notes: Optional[str] = Field(default=None, max_length=1000)
    processed_by_id: Optional[str] = Field(default=None, foreign_key="user.id")
    processed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    user: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[SubscriptionRequest.user_id]"}
    )

    def is_terminal(self) -> bool:
        return self.status != RequestStatus.PENDING.value
