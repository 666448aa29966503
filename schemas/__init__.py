from .payment_schema import (
    CamelModel,
    PlanRead, PlanListResponse,
    CreatePaymentRequest, CreatePaymentResponse,
    PaymentCallback, CallbackResponse,
    PaymentStatusRequest, PaymentStatusResponse,
    PaymentRead, PaymentHistoryResponse,
)
from .member_schema import SubscriptionSummary, MemberListResponse, MemberResponse, MemberAllocate, MemberUpdate
from .subscription_request_schema import (
    SubscriptionRequestCreate, SubscriptionRequestRead,
    SubscriptionRequestResponse, SubscriptionRequestListResponse,
    ProcessRequest, ProcessResponse, ApprovedSubscription,
)
from .user_schema import ProfileUpsert, UserRead, ProfileResponse

__all__ = [
    # Payment
    "CamelModel",
    "PlanRead", "PlanListResponse",
    "CreatePaymentRequest", "CreatePaymentResponse",
    "PaymentCallback", "CallbackResponse",
    "PaymentStatusRequest", "PaymentStatusResponse",
    "PaymentRead", "PaymentHistoryResponse",

    # Member
    "SubscriptionSummary", "MemberListResponse", "MemberResponse", "MemberAllocate", "MemberUpdate",

    # Subscription request
    "SubscriptionRequestCreate", "SubscriptionRequestRead",
    "SubscriptionRequestResponse", "SubscriptionRequestListResponse",
    "ProcessRequest", "ProcessResponse", "ApprovedSubscription",

    # User
    "ProfileUpsert", "UserRead", "ProfileResponse",
]
