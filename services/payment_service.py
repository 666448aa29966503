# ================================================================
# services/payment_service.py: checkout + gateway reconciliation
# ================================================================
from datetime import date
from typing import Optional, Tuple
import logging
import time
import uuid

from pydantic import BaseModel
from sqlalchemy import update
from sqlmodel import Session, select

from core.config import Settings
from core.errors import DuplicateError, GatewayError, UnknownTransactionError, ValidationError
from core.payment_utils import remaining_amount
from core.plans import get_plan, to_minor_units
from models.models import (
    PaymentMethod,
    PaymentType,
    PendingPayment,
    PendingPaymentStatus,
    SubscriptionMember,
    User,
    utc_now,
)
from services.phonepe_client import (
    GatewayRejection,
    GatewayStatus,
    PhonePeClient,
    interpret_code,
)
from services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


class CheckoutPlan(BaseModel):
    """A validated checkout request, before any gateway call."""
    plan: str
    amount: int
    amount_due: int
    payment_type: str
    join_date: date
    is_top_up: bool
    member_id: Optional[int] = None


class ResolutionOutcome(BaseModel):
    merchant_transaction_id: str
    status: str
    applied: bool
    member_id: Optional[int] = None


def new_merchant_transaction_id() -> str:
    # PhonePe caps merchantTransactionId at 35 chars
    return f"TXN_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class PaymentService:
    def __init__(self, session: Session, gateway: PhonePeClient, settings: Settings):
        self.session = session
        self.gateway = gateway
        self.settings = settings
        self.store = SubscriptionStore(session)

    # ------------------------------------------------------------------
    # Phase 1: initiate
    # ------------------------------------------------------------------
    def plan_checkout(
        self,
        user: User,
        plan: str,
        amount: int,
        join_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> CheckoutPlan:
        today = today or date.today()
        if user.mess_id is None:
            raise ValidationError("User is not associated with any mess")
        plan_def = get_plan(plan)

        existing = self.store.get(user.id, user.mess_id)
        is_top_up = _is_live(existing, today)
        if is_top_up:
            if existing.subscription_type != plan_def.id.value:
                raise DuplicateError("You already have an active subscription on a different plan")
            amount_due = remaining_amount(existing)
            if amount_due <= 0:
                raise ValidationError("Nothing is due on your subscription")
            join_date = existing.joining_date
        else:
            amount_due = plan_def.price
            join_date = join_date or today

        minimum = min(self.settings.MIN_PAYMENT_AMOUNT, amount_due)
        if amount < minimum:
            raise ValidationError(f"Minimum payment amount is ₹{minimum}")
        if amount > amount_due:
            raise ValidationError(f"Payment amount cannot exceed ₹{amount_due}")

        payment_type = PaymentType.ADVANCE if amount < amount_due else PaymentType.FULL
        return CheckoutPlan(
            plan=plan_def.id.value,
            amount=amount,
            amount_due=amount_due,
            payment_type=payment_type.value,
            join_date=join_date,
            is_top_up=is_top_up,
            member_id=existing.id if is_top_up else None,
        )

    async def initiate_checkout(
        self,
        user: User,
        plan: str,
        amount: int,
        join_date: Optional[date] = None,
    ) -> Tuple[PendingPayment, str]:
        """Open a gateway pay page and record the pending payment; returns (pending, payment_url)."""
        checkout = self.plan_checkout(user, plan, amount, join_date)
        merchant_transaction_id = new_merchant_transaction_id()
        logger.info(f"🎯 Checkout {merchant_transaction_id}: user {user.id}, {checkout.plan}, ₹{checkout.amount}")

        # Nothing is persisted until the gateway accepts the request
        result = await self.gateway.initiate(merchant_transaction_id, user.id, checkout.amount)
        if isinstance(result, GatewayRejection):
            raise GatewayError(f"Failed to create payment: {result.message}", retryable=False)

        pending = PendingPayment(
            merchant_transaction_id=merchant_transaction_id,
            user_id=user.id,
            mess_id=user.mess_id,
            amount=checkout.amount,
            subscription_type=checkout.plan,
            payment_type=checkout.payment_type,
            join_date=checkout.join_date,
            is_top_up=checkout.is_top_up,
            member_id=checkout.member_id,
        )
        self.session.add(pending)
        self.session.commit()
        self.session.refresh(pending)
        return pending, result.payment_url

    # ------------------------------------------------------------------
    # Phase 2: resolve (callback or poll)
    # ------------------------------------------------------------------
    def get_pending(self, merchant_transaction_id: str) -> PendingPayment:
        pending = self.session.exec(
            select(PendingPayment).where(PendingPayment.merchant_transaction_id == merchant_transaction_id)
        ).first()
        if not pending:
            raise UnknownTransactionError(f"Unknown transaction {merchant_transaction_id}")
        return pending

    def resolve(
        self,
        merchant_transaction_id: str,
        gateway_transaction_id: Optional[str],
        code: Optional[str],
        amount_minor: Optional[int] = None,
        today: Optional[date] = None,
    ) -> ResolutionOutcome:
        """
        Apply a gateway verdict exactly once.

        The pending row is flipped with a conditional UPDATE guarded on
        status='pending' in the same transaction as the membership update
        and the ledger insert, so a duplicate webhook racing a status poll
        applies the payment at most once.
        """
        pending = self.get_pending(merchant_transaction_id)

        if pending.status != PendingPaymentStatus.PENDING.value:
            logger.info(f"ℹ️ {merchant_transaction_id} already resolved as {pending.status}; ignoring")
            return self._outcome(pending, applied=False)

        state = interpret_code(code)
        if state == "pending":
            logger.info(f"⏳ {merchant_transaction_id} still pending at gateway ({code})")
            return self._outcome(pending, applied=False)

        if state == "success" and amount_minor is not None and amount_minor != to_minor_units(pending.amount):
            logger.warning(f"⚠️ {merchant_transaction_id} amount mismatch: gateway {amount_minor}, expected {to_minor_units(pending.amount)}")
            state = "failed"

        result = self.session.execute(
            update(PendingPayment)
            .where(
                PendingPayment.id == pending.id,
                PendingPayment.status == PendingPaymentStatus.PENDING.value,
            )
            .values(
                status=state,
                gateway_transaction_id=gateway_transaction_id,
                gateway_code=code,
                resolved_at=utc_now(),
            )
        )
        if result.rowcount != 1:
            self.session.rollback()
            self.session.refresh(pending)
            logger.info(f"ℹ️ {merchant_transaction_id} resolved concurrently; ignoring")
            return self._outcome(pending, applied=False)

        member_id = None
        if state == "success":
            try:
                member = self._apply_success(pending, today or date.today())
            except Exception:
                self.session.rollback()
                logger.exception(f"❌ Failed to apply {merchant_transaction_id}; left pending for retry")
                raise
            member_id = member.id

        self.session.commit()
        self.session.refresh(pending)
        logger.info(f"✅ {merchant_transaction_id} resolved as {state}")
        return self._outcome(pending, applied=True, member_id=member_id)

    def _apply_success(self, pending: PendingPayment, today: date) -> SubscriptionMember:
        member = self.store.get(pending.user_id, pending.mess_id)
        if pending.is_top_up and member is not None and member.id == pending.member_id:
            # Credit the membership the checkout was opened against, whatever the date now
            top_up = True
        else:
            top_up = _is_live(member, today) and member.subscription_type == pending.subscription_type
        if not top_up:
            member = self.store.create_or_update(
                pending.user_id,
                pending.mess_id,
                pending.subscription_type,
                pending.join_date,
                amount_paid=0,
                payment_type=pending.payment_type,
                commit=False,
            )
        self.store.record_payment(
            member,
            pending.amount,
            is_advance=pending.payment_type == PaymentType.ADVANCE.value,
            method=PaymentMethod.PHONEPE.value,
            transaction_id=pending.merchant_transaction_id,
            commit=False,
        )
        return member

    async def poll_status(self, merchant_transaction_id: str) -> Tuple[GatewayStatus, ResolutionOutcome]:
        """Ask the gateway, then reconcile locally with the same idempotent path."""
        self.get_pending(merchant_transaction_id)
        result = await self.gateway.check_status(merchant_transaction_id)
        if isinstance(result, GatewayRejection):
            raise GatewayError(f"Could not check payment status: {result.message}", retryable=True)

        outcome = self.resolve(
            merchant_transaction_id,
            result.gateway_transaction_id,
            result.code,
            amount_minor=result.amount_minor,
        )
        return result, outcome

    @staticmethod
    def _outcome(pending: PendingPayment, applied: bool, member_id: Optional[int] = None) -> ResolutionOutcome:
        return ResolutionOutcome(
            merchant_transaction_id=pending.merchant_transaction_id,
            status=pending.status,
            applied=applied,
            member_id=member_id,
        )


def _is_live(member: Optional[SubscriptionMember], today: date) -> bool:
    return member is not None and member.is_active and not member.is_expired(today)
