# routes/users.py
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlmodel import Session

from core.database import get_session
from core.security import get_current_user, get_token_claims
from models.models import User, utc_now
from schemas.member_schema import SubscriptionSummary
from schemas.user_schema import ProfileResponse, ProfileUpsert, UserRead
from services.approval_service import default_mess
from services.subscription_store import SubscriptionStore

import logging
logger = logging.getLogger(__name__)


router = APIRouter(prefix="/users", tags=["Users"])


# ----------------------------------------------------------------------
# ✅ Create / update own profile (first call after sign-in)
# ----------------------------------------------------------------------
@router.post("/profile", response_model=ProfileResponse)
def upsert_profile(
    payload: ProfileUpsert,
    claims: Dict[str, Any] = Depends(get_token_claims),
    session: Session = Depends(get_session),
):
    """Provision the profile row for a verified identity; role is never taken from the body."""
    user_id = claims["sub"]
    user = session.get(User, user_id)
    created = user is None
    if created:
        user = User(id=user_id, name=payload.name)

    user.name = payload.name
    user.email = payload.email or user.email or claims.get("email")
    if payload.mobile_number is not None:
        user.mobile_number = payload.mobile_number
    if payload.parent_mobile is not None:
        user.parent_mobile = payload.parent_mobile
    user.updated_at = utc_now()

    if user.mess_id is None:
        mess = default_mess(session)
        if mess:
            user.mess_id = mess.id

    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"{'🆕 Created' if created else '🔄 Updated'} profile for user {user.id}")
    return ProfileResponse(user=UserRead.model_validate(user))


# ----------------------------------------------------------------------
# ✅ Get Current User (with subscription summary)
# ----------------------------------------------------------------------
@router.get("/me", response_model=ProfileResponse)
def get_current_user_endpoint(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    subscription = None
    if current_user.mess_id is not None:
        member = SubscriptionStore(session).get(current_user.id, current_user.mess_id)
        if member:
            subscription = SubscriptionSummary.from_member(member)
    return ProfileResponse(user=UserRead.model_validate(current_user), subscription=subscription)
