from pydantic import EmailStr, Field
from typing import Optional

from schemas.member_schema import SubscriptionSummary
from schemas.payment_schema import CamelModel


# ============================================================
# ✅ Profile upsert (input); id comes from the token
# ============================================================
class ProfileUpsert(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    mobile_number: Optional[str] = Field(default=None, max_length=20)
    parent_mobile: Optional[str] = Field(default=None, max_length=20)


class UserRead(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    mobile_number: Optional[str] = None
    parent_mobile: Optional[str] = None
    role: str
    mess_id: Optional[int] = None
    is_active: bool


class ProfileResponse(CamelModel):
    success: bool = True
    user: UserRead
    subscription: Optional[SubscriptionSummary] = None
