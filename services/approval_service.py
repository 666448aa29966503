# services/approval_service.py
from datetime import date
from typing import List, Optional, Tuple
import logging

from sqlalchemy import update
from sqlmodel import Session, select

from core.errors import DuplicateError, NotFoundError, ValidationError
from core.payment_utils import has_access
from core.plans import get_plan
from core.security import ensure_same_mess
from models.models import (
    Mess,
    PaymentMethod,
    PaymentType,
    RequestStatus,
    SubscriptionMember,
    SubscriptionRequest,
    User,
    utc_now,
)
from services.subscription_store import SubscriptionStore, new_transaction_id

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"


def default_mess(session: Session) -> Optional[Mess]:
    """Single-tenant deployment: the first active mess."""
    return session.exec(select(Mess).where(Mess.is_active == True).order_by(Mess.id)).first()


class ApprovalService:
    def __init__(self, session: Session):
        self.session = session
        self.store = SubscriptionStore(session)

    def submit_request(
        self,
        user: User,
        plan: str,
        join_date: date,
        message: Optional[str] = None,
        today: Optional[date] = None,
    ) -> SubscriptionRequest:
        plan_def = get_plan(plan)

        if user.mess_id is None:
            mess = default_mess(self.session)
            if not mess:
                raise ValidationError("No active mess available. Please contact support.")
            user.mess_id = mess.id
            self.session.add(user)
            logger.info(f"✅ User {user.id} auto-assigned to mess {mess.id}")

        existing = self.store.get(user.id, user.mess_id)
        if existing and has_access(existing, today or date.today()):
            raise DuplicateError("You already have an active subscription")

        pending = self.session.exec(
            select(SubscriptionRequest).where(
                SubscriptionRequest.user_id == user.id,
                SubscriptionRequest.status == RequestStatus.PENDING.value,
            )
        ).first()
        if pending:
            raise DuplicateError("You already have a pending approval request")

        request = SubscriptionRequest(
            user_id=user.id,
            mess_id=user.mess_id,
            requested_plan=plan_def.id.value,
            requested_join_date=join_date,
            request_message=message,
        )
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        logger.info(f"📝 Subscription request {request.id} from user {user.id} for {plan_def.id.value}")
        return request

    def list_for_mess(self, mess_id: int) -> List[SubscriptionRequest]:
        statement = (
            select(SubscriptionRequest)
            .where(SubscriptionRequest.mess_id == mess_id)
            .order_by(SubscriptionRequest.created_at.desc(), SubscriptionRequest.id.desc())
        )
        return list(self.session.exec(statement).all())

    def list_for_user(self, user_id: str) -> List[SubscriptionRequest]:
        statement = (
            select(SubscriptionRequest)
            .where(SubscriptionRequest.user_id == user_id)
            .order_by(SubscriptionRequest.created_at.desc(), SubscriptionRequest.id.desc())
        )
        return list(self.session.exec(statement).all())

    def process(
        self,
        request_id: int,
        admin: User,
        action: str,
        notes: Optional[str] = None,
    ) -> Tuple[SubscriptionRequest, Optional[SubscriptionMember]]:
        """
        Approve or reject a pending request.

        Approval grants access without payment: the member is stored with
        amount_paid=0, the plan's real price as total due, and fee_waived set.
        """
        if action not in (APPROVE, REJECT):
            raise ValidationError("Invalid action")

        request = self.session.get(SubscriptionRequest, request_id)
        if not request:
            raise NotFoundError("Subscription request not found")
        ensure_same_mess(admin, request.mess_id)
        if request.is_terminal():
            raise ValidationError("Request already processed")

        notes = (notes or "").strip()
        if action == REJECT and not notes:
            raise ValidationError("A reason is required to reject a request")

        new_status = RequestStatus.APPROVED if action == APPROVE else RequestStatus.REJECTED
        now = utc_now()
        result = self.session.execute(
            update(SubscriptionRequest)
            .where(
                SubscriptionRequest.id == request.id,
                SubscriptionRequest.status == RequestStatus.PENDING.value,
            )
            .values(
                status=new_status.value,
                admin_notes=notes or "Approved by admin with ₹0 payment",
                processed_by_id=admin.id,
                processed_at=now,
                updated_at=now,
            )
        )
        if result.rowcount != 1:
            self.session.rollback()
            raise ValidationError("Request already processed")

        member = None
        if new_status == RequestStatus.APPROVED:
            try:
                member = self.store.create_or_update(
                    request.user_id,
                    request.mess_id,
                    request.requested_plan,
                    request.requested_join_date,
                    amount_paid=0,
                    payment_type=PaymentType.FULL.value,
                    fee_waived=True,
                    commit=False,
                )
                self.store.record_payment(
                    member,
                    0,
                    is_advance=False,
                    method=PaymentMethod.ADMIN_APPROVED.value,
                    transaction_id=new_transaction_id("ADMIN"),
                    commit=False,
                )
            except Exception:
                self.session.rollback()
                raise

        self.session.commit()
        self.session.refresh(request)
        if member is not None:
            self.session.refresh(member)
        logger.info(f"🛂 Request {request.id} {new_status.value} by admin {admin.id}")
        return request, member
