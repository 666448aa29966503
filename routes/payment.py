# routes/payment.py
import binascii
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header
from sqlmodel import Session, select

from core.config import Settings, get_settings
from core.database import get_session
from core.errors import AuthError, UnknownTransactionError, ValidationError
from core.plans import list_plans
from core.security import get_current_user
from models.models import Payment, User
from schemas.payment_schema import (
    CallbackResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentCallback,
    PaymentHistoryResponse,
    PaymentRead,
    PaymentStatusRequest,
    PaymentStatusResponse,
    PlanListResponse,
    PlanRead,
)
from services.payment_service import PaymentService
from services.phonepe_client import PhonePeClient, decode_payload, verify_callback_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


# -------------------------
# Dependencies
# -------------------------
def get_phonepe_client(settings: Settings = Depends(get_settings)) -> PhonePeClient:
    return PhonePeClient(settings)


def get_payment_service(
    session: Session = Depends(get_session),
    gateway: PhonePeClient = Depends(get_phonepe_client),
    settings: Settings = Depends(get_settings),
) -> PaymentService:
    return PaymentService(session, gateway, settings)


def _unpack_signed_callback(
    response: str, x_verify: Optional[str], settings: Settings
) -> Dict[str, Any]:
    """Verify and decode the signed `response` envelope to merchant txn / gateway txn / code / amount."""
    if not verify_callback_signature(response, x_verify, settings):
        logger.warning("🚫 Rejected payment callback with a bad X-VERIFY signature")
        raise AuthError("Invalid callback signature")
    try:
        payload = decode_payload(response)
    except (binascii.Error, ValueError, UnicodeDecodeError):
        raise ValidationError("Malformed callback payload")
    if not isinstance(payload, dict):
        raise ValidationError("Malformed callback payload")

    data = payload.get("data") or {}
    return {
        "merchant_transaction_id": data.get("merchantTransactionId"),
        "transaction_id": data.get("transactionId"),
        "code": payload.get("code") or data.get("state"),
        "amount": data.get("amount"),
    }


# -------------------------
# ✅ Plans
# -------------------------
@router.get("/plans", response_model=PlanListResponse, response_model_by_alias=True)
def get_plans():
    plans = [
        PlanRead(
            id=plan.id.value,
            label=plan.label,
            price=plan.price,
            duration_days=plan.duration_days,
            duration_months=plan.duration_months,
        )
        for plan in list_plans()
    ]
    return PlanListResponse(plans=plans)


# -------------------------
# ✅ Create payment (checkout)
# -------------------------
@router.post("/create", response_model=CreatePaymentResponse, response_model_by_alias=True)
async def create_payment(
    payload: CreatePaymentRequest,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    pending, payment_url = await service.initiate_checkout(
        current_user,
        payload.plan_type,
        payload.amount,
        payload.join_date,
    )
    return CreatePaymentResponse(
        payment_url=payment_url,
        transaction_id=pending.merchant_transaction_id,
        merchant_transaction_id=pending.merchant_transaction_id,
    )


# -------------------------
# ✅ Gateway callback (webhook)
# -------------------------
@router.post("/callback", response_model=CallbackResponse, response_model_by_alias=True)
async def payment_callback(
    callback: PaymentCallback,
    x_verify: Optional[str] = Header(default=None, alias="X-VERIFY"),
    service: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_settings),
):
    if callback.response is None:
        # Unsigned notification: its code is never trusted, the gateway is asked instead
        if not callback.merchant_transaction_id:
            raise ValidationError("merchantTransactionId is required")
        logger.info(f"📬 Unsigned callback for {callback.merchant_transaction_id}; checking with gateway")
        _, outcome = await service.poll_status(callback.merchant_transaction_id)
    else:
        fields = _unpack_signed_callback(callback.response, x_verify, settings)
        if not fields["merchant_transaction_id"]:
            raise ValidationError("merchantTransactionId is required")

        logger.info(f"📬 Payment callback for {fields['merchant_transaction_id']}: {fields['code']}")
        outcome = service.resolve(
            fields["merchant_transaction_id"],
            fields["transaction_id"],
            fields["code"],
            amount_minor=fields["amount"],
        )
    message = "Payment processed" if outcome.applied else "No change"
    return CallbackResponse(message=message, status=outcome.status, applied=outcome.applied)


# -------------------------
# ✅ Status poll
# -------------------------
@router.post("/status", response_model=PaymentStatusResponse, response_model_by_alias=True)
async def payment_status(
    payload: PaymentStatusRequest,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    pending = service.get_pending(payload.transaction_id)
    is_mess_admin = current_user.is_admin() and current_user.mess_id == pending.mess_id
    if pending.user_id != current_user.id and not is_mess_admin:
        # Do not reveal other users' transactions
        raise UnknownTransactionError(f"Unknown transaction {payload.transaction_id}")

    gateway_status, outcome = await service.poll_status(payload.transaction_id)
    return PaymentStatusResponse(
        code=gateway_status.code,
        state=gateway_status.state,
        status=outcome.status,
        applied=outcome.applied,
        gateway_transaction_id=gateway_status.gateway_transaction_id,
    )


# -------------------------
# ✅ Payment history
# -------------------------
@router.get("/history", response_model=PaymentHistoryResponse, response_model_by_alias=True)
def payment_history(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    payments = session.exec(
        select(Payment)
        .where(Payment.user_id == current_user.id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
    ).all()
    return PaymentHistoryResponse(payments=[PaymentRead.model_validate(p) for p in payments])
