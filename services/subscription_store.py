# services/subscription_store.py
"""
Persistence for mess memberships and the payment ledger.

Cached ``payment_status``/``status`` columns are rewritten on every mutation
and by ``refresh_stale_statuses``; callers that need the truth should use
``core.payment_utils.derive_member_status``.
"""
from datetime import date
from typing import List, Optional
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core.errors import DuplicateError, NotFoundError, ValidationError
from core.payment_utils import derive_member_status, remaining_amount
from core.plans import get_plan
from models.models import (
    Payment,
    PaymentMethod,
    PaymentType,
    PendingPaymentStatus,
    SubscriptionMember,
    utc_now,
)

logger = logging.getLogger(__name__)


def new_transaction_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:20].upper()}"


class SubscriptionStore:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, user_id: str, mess_id: int) -> Optional[SubscriptionMember]:
        statement = select(SubscriptionMember).where(
            SubscriptionMember.user_id == user_id,
            SubscriptionMember.mess_id == mess_id,
        )
        return self.session.exec(statement).first()

    def get_by_id(self, member_id: int) -> SubscriptionMember:
        member = self.session.get(SubscriptionMember, member_id)
        if not member:
            raise NotFoundError("Subscription not found")
        return member

    def list_for_mess(self, mess_id: int) -> List[SubscriptionMember]:
        statement = (
            select(SubscriptionMember)
            .where(SubscriptionMember.mess_id == mess_id)
            .order_by(SubscriptionMember.created_at.desc())
        )
        return list(self.session.exec(statement).all())

    def payments_for(self, member_id: int) -> List[Payment]:
        statement = (
            select(Payment)
            .where(Payment.member_id == member_id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return list(self.session.exec(statement).all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        user_id: str,
        mess_id: int,
        plan: str,
        join_date: date,
        amount_paid: int = 0,
        payment_type: str = PaymentType.FULL.value,
        total_due: Optional[int] = None,
        expiry_date: Optional[date] = None,
        fee_waived: bool = False,
        commit: bool = True,
    ) -> SubscriptionMember:
        """Insert a new membership; a second one for the same user and mess is refused."""
        if self.get(user_id, mess_id):
            raise DuplicateError("User already has a subscription for this mess")

        plan_def = get_plan(plan)
        member = SubscriptionMember(
            user_id=user_id,
            mess_id=mess_id,
            subscription_type=plan_def.id.value,
            joining_date=join_date,
            expiry_date=expiry_date or plan_def.expiry_for(join_date),
            total_amount_due=plan_def.price if total_due is None else total_due,
            amount_paid=amount_paid,
            payment_type=payment_type,
            is_active=True,
            fee_waived=fee_waived,
        )
        self._apply_status(member)
        self.session.add(member)
        try:
            self._write(commit)
        except IntegrityError:
            self.session.rollback()
            raise DuplicateError("User already has a subscription for this mess")
        logger.info(f"🆕 Subscription created for user {user_id} in mess {mess_id} ({plan_def.id.value})")
        return member

    def create_or_update(
        self,
        user_id: str,
        mess_id: int,
        plan: str,
        join_date: date,
        amount_paid: Optional[int] = None,
        payment_type: str = PaymentType.FULL.value,
        total_due: Optional[int] = None,
        expiry_date: Optional[date] = None,
        fee_waived: bool = False,
        commit: bool = True,
    ) -> SubscriptionMember:
        """
        Upsert the single membership for (user, mess).

        ``amount_paid=None`` keeps whatever was paid so far on an existing
        record (and means 0 for a new one).
        """
        member = self.get(user_id, mess_id)
        if member is None:
            return self.create(
                user_id,
                mess_id,
                plan,
                join_date,
                amount_paid=amount_paid or 0,
                payment_type=payment_type,
                total_due=total_due,
                expiry_date=expiry_date,
                fee_waived=fee_waived,
                commit=commit,
            )

        plan_def = get_plan(plan)
        member.subscription_type = plan_def.id.value
        member.joining_date = join_date
        member.expiry_date = expiry_date or plan_def.expiry_for(join_date)
        member.total_amount_due = plan_def.price if total_due is None else total_due
        if amount_paid is not None:
            member.amount_paid = amount_paid
        member.payment_type = payment_type
        member.fee_waived = fee_waived
        member.is_active = True
        member.updated_at = utc_now()
        self._apply_status(member)
        self.session.add(member)
        self._write(commit)
        logger.info(f"🔄 Subscription {member.id} updated in place ({plan_def.id.value})")
        return member

    def update(
        self,
        member_id: int,
        plan: Optional[str] = None,
        join_date: Optional[date] = None,
        expiry_date: Optional[date] = None,
        amount_paid: Optional[int] = None,
        total_due: Optional[int] = None,
        payment_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        commit: bool = True,
    ) -> SubscriptionMember:
        """Admin edit: overwrite whatever fields were supplied (last writer wins)."""
        member = self.get_by_id(member_id)

        if amount_paid is not None and amount_paid < 0:
            raise ValidationError("Amount paid cannot be negative")
        if total_due is not None and total_due <= 0:
            raise ValidationError("Invalid total amount due. Please specify the plan amount.")

        if plan is not None:
            member.subscription_type = get_plan(plan).id.value
        if join_date is not None:
            member.joining_date = join_date
        if expiry_date is not None:
            member.expiry_date = expiry_date
        if amount_paid is not None:
            member.amount_paid = amount_paid
        if total_due is not None:
            member.total_amount_due = total_due
        if payment_type is not None:
            member.payment_type = payment_type
        if is_active is not None:
            member.is_active = is_active
        member.updated_at = utc_now()

        self._apply_status(member)
        self.session.add(member)
        self._write(commit)
        return member

    def deactivate(self, member_id: int) -> SubscriptionMember:
        return self.update(member_id, is_active=False)

    def record_payment(
        self,
        member: SubscriptionMember,
        amount: int,
        is_advance: Optional[bool] = None,
        method: str = PaymentMethod.PHONEPE.value,
        transaction_id: Optional[str] = None,
        commit: bool = True,
    ) -> Payment:
        """Append a ledger entry and credit it to the member."""
        if amount < 0:
            raise ValidationError("Payment amount cannot be negative")
        if is_advance is None:
            is_advance = amount < remaining_amount(member)

        member.amount_paid += amount
        member.updated_at = utc_now()
        self._apply_status(member)

        payment = Payment(
            member_id=member.id,
            user_id=member.user_id,
            mess_id=member.mess_id,
            amount=amount,
            status=PendingPaymentStatus.SUCCESS.value,
            payment_method=method,
            transaction_id=transaction_id or new_transaction_id("TXN"),
            is_advance=is_advance,
            remaining_amount=remaining_amount(member),
        )
        self.session.add(member)
        self.session.add(payment)
        self._write(commit)
        logger.info(f"💰 Recorded ₹{amount} ({method}) for subscription {member.id}; paid {member.amount_paid}/{member.total_amount_due}")
        return payment

    # ------------------------------------------------------------------
    # Cached status
    # ------------------------------------------------------------------
    def refresh_status(self, member: SubscriptionMember, today: Optional[date] = None) -> bool:
        """Rewrite the cached statuses if they drifted; returns True when changed."""
        before = (member.payment_status, member.status)
        self._apply_status(member, today)
        changed = before != (member.payment_status, member.status)
        if changed:
            member.updated_at = utc_now()
            self.session.add(member)
        return changed

    def refresh_stale_statuses(self, today: Optional[date] = None) -> int:
        today = today or date.today()
        members = self.session.exec(select(SubscriptionMember)).all()
        changed = sum(1 for member in members if self.refresh_status(member, today))
        if changed:
            self.session.commit()
            logger.info(f"✅ Refreshed cached status for {changed} subscriptions")
        return changed

    # ------------------------------------------------------------------
    def _apply_status(self, member: SubscriptionMember, today: Optional[date] = None) -> None:
        payment_status, membership_status = derive_member_status(member, today or date.today())
        member.payment_status = payment_status.value
        member.status = membership_status.value

    def _write(self, commit: bool) -> None:
        if commit:
            self.session.commit()
        else:
            self.session.flush()
