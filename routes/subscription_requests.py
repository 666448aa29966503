# routes/subscription_requests.py
import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlmodel import Session, select

from core.database import get_session
from core.errors import AuthorizationError
from core.payment_utils import derive_member_status
from core.security import get_current_admin, get_current_user
from models.models import RequestStatus, User, UserRole
from schemas.subscription_request_schema import (
    ApprovedSubscription,
    ProcessRequest,
    ProcessResponse,
    SubscriptionRequestCreate,
    SubscriptionRequestListResponse,
    SubscriptionRequestRead,
    SubscriptionRequestResponse,
)
from services.approval_service import APPROVE, ApprovalService
from services.email_service import EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription-requests", tags=["Subscription Requests"])


# ----------------------------------------------------------------------
# ✅ Submit a request (user)
# ----------------------------------------------------------------------
@router.post("", response_model=SubscriptionRequestResponse)
def submit_subscription_request(
    payload: SubscriptionRequestCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
):
    request = ApprovalService(session).submit_request(
        current_user,
        payload.plan,
        payload.joining_date,
        payload.message,
    )

    admin_emails = [
        admin.email
        for admin in session.exec(
            select(User).where(
                User.mess_id == request.mess_id,
                User.role == UserRole.ADMIN.value,
                User.is_active == True,
            )
        ).all()
        if admin.email
    ]
    background_tasks.add_task(
        email_service.send_new_request_email,
        admin_emails,
        current_user.name,
        current_user.email or "",
        request.requested_plan,
    )

    return SubscriptionRequestResponse(
        message="Subscription request submitted successfully",
        request=SubscriptionRequestRead.model_validate(request),
    )


# ----------------------------------------------------------------------
# ✅ My requests (user)
# ----------------------------------------------------------------------
@router.get("/mine", response_model=SubscriptionRequestListResponse)
def list_my_requests(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    requests = ApprovalService(session).list_for_user(current_user.id)
    pending = sum(1 for r in requests if r.status == RequestStatus.PENDING.value)
    return SubscriptionRequestListResponse(
        requests=[SubscriptionRequestRead.model_validate(r) for r in requests],
        pending=pending,
    )


# ----------------------------------------------------------------------
# ✅ All requests for the admin's mess
# ----------------------------------------------------------------------
@router.get("", response_model=SubscriptionRequestListResponse)
def list_mess_requests(
    current_admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    requests = ApprovalService(session).list_for_mess(current_admin.mess_id)
    pending = sum(1 for r in requests if r.status == RequestStatus.PENDING.value)
    return SubscriptionRequestListResponse(
        requests=[SubscriptionRequestRead.model_validate(r) for r in requests],
        pending=pending,
    )


# ----------------------------------------------------------------------
# ✅ Approve / reject (admin)
# ----------------------------------------------------------------------
@router.post("/process", response_model=ProcessResponse)
def process_subscription_request(
    payload: ProcessRequest,
    background_tasks: BackgroundTasks,
    current_admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
):
    if payload.admin_id is not None and payload.admin_id != current_admin.id:
        raise AuthorizationError("Admin id does not match the authenticated user")

    request, member = ApprovalService(session).process(
        payload.request_id,
        current_admin,
        payload.action,
        payload.admin_notes,
    )

    approved = payload.action == APPROVE
    requester = session.get(User, request.user_id)
    if requester and requester.email:
        background_tasks.add_task(
            email_service.send_request_decision_email,
            requester.email,
            requester.name,
            request.requested_plan,
            approved,
            request.admin_notes or "",
        )

    subscription = None
    if member is not None:
        payment_status, membership_status = derive_member_status(member, date.today())
        subscription = ApprovedSubscription(
            id=member.id,
            plan=member.subscription_type,
            total_amount=member.total_amount_due,
            paid_amount=member.amount_paid,
            payment_status=payment_status.value,
            status=membership_status.value,
        )

    return ProcessResponse(
        message="Subscription approved successfully" if approved else "Subscription request rejected",
        request=SubscriptionRequestRead.model_validate(request),
        subscription=subscription,
    )
