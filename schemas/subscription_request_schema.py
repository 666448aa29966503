# subscription_request_schema.py
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import Field

from schemas.payment_schema import CamelModel


class SubscriptionRequestCreate(CamelModel):
    plan: str = Field(..., max_length=30)
    joining_date: date
    message: Optional[str] = Field(default=None, max_length=1000)


class SubscriptionRequestRead(CamelModel):
    id: int
    user_id: str
    mess_id: int
    requested_plan: str
    requested_join_date: date
    request_message: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    processed_by_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class SubscriptionRequestResponse(CamelModel):
    success: bool = True
    message: str
    request: SubscriptionRequestRead


class SubscriptionRequestListResponse(CamelModel):
    success: bool = True
    requests: List[SubscriptionRequestRead]
    pending: int = 0


# ============================================================
# ✅ Approve / reject
# ============================================================
class ProcessRequest(CamelModel):
    request_id: int
    action: Literal["approve", "reject"]
    admin_notes: Optional[str] = Field(default=None, max_length=1000)
    # The acting admin is the authenticated caller; when sent it must match.
    admin_id: Optional[str] = None


class ApprovedSubscription(CamelModel):
    id: int
    plan: str
    total_amount: int
    paid_amount: int
    payment_status: str
    status: str
    approved_by: str = "admin"


class ProcessResponse(CamelModel):
    success: bool = True
    message: str
    request: SubscriptionRequestRead
    subscription: Optional[ApprovedSubscription] = None
