# payment_schema.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import date, datetime


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------------------------
# Plans
# ---------------------------
class PlanRead(CamelModel):
    id: str
    label: str
    price: int
    duration_days: int
    duration_months: int


class PlanListResponse(CamelModel):
    success: bool = True
    plans: List[PlanRead]


# ---------------------------
# Checkout
# ---------------------------
class CreatePaymentRequest(CamelModel):
    amount: int = Field(..., gt=0, description="Rupees")
    plan_type: str = Field(..., max_length=30)
    join_date: Optional[date] = None


class CreatePaymentResponse(CamelModel):
    success: bool = True
    payment_url: str
    transaction_id: str
    merchant_transaction_id: str


# ---------------------------
# Callback / status
# ---------------------------
class PaymentCallback(CamelModel):
    # PhonePe S2S callbacks wrap everything in a signed base64 `response`.
    # The flat fields only identify the transaction to re-check with the gateway.
    response: Optional[str] = None
    merchant_transaction_id: Optional[str] = None
    transaction_id: Optional[str] = None
    code: Optional[str] = None
    amount: Optional[int] = Field(default=None, description="Paise, when the gateway reports it")


class CallbackResponse(CamelModel):
    success: bool = True
    message: str
    status: str
    applied: bool


class PaymentStatusRequest(CamelModel):
    transaction_id: str = Field(..., min_length=1, max_length=64)


class PaymentStatusResponse(CamelModel):
    success: bool = True
    code: str
    state: str
    status: str
    applied: bool
    gateway_transaction_id: Optional[str] = None


# ---------------------------
# Ledger
# ---------------------------
class PaymentRead(CamelModel):
    id: int
    member_id: int
    amount: int
    status: str
    payment_method: str
    transaction_id: str
    is_advance: bool
    remaining_amount: int
    payment_date: datetime


class PaymentHistoryResponse(CamelModel):
    success: bool = True
    payments: List[PaymentRead]
