# ================================================================
# services/phonepe_client.py: PhonePe PG (pay page + status API)
# ================================================================
import asyncio
import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Literal, Optional, Union

import httpx
from pydantic import BaseModel

from core.config import Settings
from core.errors import GatewayError
from core.plans import to_minor_units

logger = logging.getLogger(__name__)

PAY_PATH = "/pg/v1/pay"
STATUS_PATH = "/pg/v1/status/{merchant_id}/{transaction_id}"


# -------------------------
# Result types
# -------------------------
class PaymentSession(BaseModel):
    kind: Literal["session"] = "session"
    merchant_transaction_id: str
    payment_url: str


class GatewayRejection(BaseModel):
    kind: Literal["rejected"] = "rejected"
    code: Optional[str] = None
    message: str


class GatewayStatus(BaseModel):
    kind: Literal["status"] = "status"
    merchant_transaction_id: str
    code: str
    state: Literal["success", "pending", "failed"]
    gateway_transaction_id: Optional[str] = None
    amount_minor: Optional[int] = None
    raw: Dict[str, Any] = {}


InitiateResult = Union[PaymentSession, GatewayRejection]
StatusResult = Union[GatewayStatus, GatewayRejection]


# -------------------------
# Signing helpers
# -------------------------
def build_checksum(signed_part: str, salt_key: str, salt_index: str) -> str:
    digest = hashlib.sha256((signed_part + salt_key).encode("utf-8")).hexdigest()
    return f"{digest}###{salt_index}"


def encode_payload(payload: Dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def decode_payload(encoded: str) -> Dict[str, Any]:
    return json.loads(base64.b64decode(encoded).decode("utf-8"))


def verify_callback_signature(response_b64: str, x_verify: Optional[str], settings: Settings) -> bool:
    if not x_verify:
        return False
    expected = build_checksum(response_b64, settings.PHONEPE_SALT_KEY, settings.PHONEPE_SALT_INDEX)
    return hmac.compare_digest(expected, x_verify)


def interpret_code(code: Optional[str]) -> Literal["success", "pending", "failed"]:
    """PAYMENT_SUCCESS -> success, PAYMENT_PENDING -> pending, anything else -> failed."""
    normalized = (code or "").upper()
    if "SUCCESS" in normalized:
        return "success"
    if "PENDING" in normalized:
        return "pending"
    return "failed"


class PhonePeClient:
    """
    Thin async client for the PhonePe hermes API.

    Only transport-level failures (connect errors, timeouts) are retried;
    any HTTP response, including 4xx/5xx, is returned to the caller as is.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_backoff: float = 0.5,
    ):
        self.settings = settings
        self.transport = transport
        self.retry_backoff = retry_backoff

    def build_pay_request(self, merchant_transaction_id: str, user_id: str, amount: int) -> Dict[str, Any]:
        s = self.settings
        payload = {
            "merchantId": s.PHONEPE_MERCHANT_ID,
            "merchantTransactionId": merchant_transaction_id,
            "merchantUserId": f"USER_{user_id}",
            "amount": to_minor_units(amount),
            "redirectUrl": s.payment_redirect_url(merchant_transaction_id),
            "redirectMode": s.PHONEPE_REDIRECT_MODE,
            "callbackUrl": s.PAYMENT_CALLBACK_URL,
            "paymentInstrument": {"type": s.PHONEPE_INSTRUMENT_TYPE},
        }
        encoded = encode_payload(payload)
        return {
            "body": {"request": encoded},
            "headers": {
                "Content-Type": "application/json",
                "accept": "application/json",
                "X-VERIFY": build_checksum(encoded + PAY_PATH, s.PHONEPE_SALT_KEY, s.PHONEPE_SALT_INDEX),
            },
        }

    async def initiate(self, merchant_transaction_id: str, user_id: str, amount: int) -> InitiateResult:
        request = self.build_pay_request(merchant_transaction_id, user_id, amount)
        response = await self._send("POST", PAY_PATH, request["headers"], body=request["body"])
        data = _json_or_empty(response)

        redirect_url = (
            ((data.get("data") or {}).get("instrumentResponse") or {}).get("redirectInfo") or {}
        ).get("url")
        if response.status_code == 200 and data.get("success") and redirect_url:
            return PaymentSession(merchant_transaction_id=merchant_transaction_id, payment_url=redirect_url)

        logger.error(f"❌ PhonePe rejected pay request {merchant_transaction_id}: HTTP {response.status_code} {data.get('code')}")
        return GatewayRejection(
            code=data.get("code"),
            message=data.get("message") or f"Gateway returned HTTP {response.status_code}",
        )

    async def check_status(self, merchant_transaction_id: str) -> StatusResult:
        s = self.settings
        path = STATUS_PATH.format(merchant_id=s.PHONEPE_MERCHANT_ID, transaction_id=merchant_transaction_id)
        headers = {
            "Content-Type": "application/json",
            "accept": "application/json",
            "X-VERIFY": build_checksum(path, s.PHONEPE_SALT_KEY, s.PHONEPE_SALT_INDEX),
            "X-MERCHANT-ID": s.PHONEPE_MERCHANT_ID,
        }
        response = await self._send("GET", path, headers)
        data = _json_or_empty(response)

        if response.status_code != 200 or not data.get("code"):
            return GatewayRejection(
                code=data.get("code"),
                message=data.get("message") or f"Gateway returned HTTP {response.status_code}",
            )

        details = data.get("data") or {}
        return GatewayStatus(
            merchant_transaction_id=merchant_transaction_id,
            code=data["code"],
            state=interpret_code(data["code"]),
            gateway_transaction_id=details.get("transactionId"),
            amount_minor=details.get("amount"),
            raw=data,
        )

    async def _send(self, method: str, path: str, headers: Dict[str, str], body: Optional[dict] = None) -> httpx.Response:
        url = f"{self.settings.PHONEPE_BASE_URL}{path}"
        attempts = self.settings.PHONEPE_MAX_RETRIES + 1
        last_error: Optional[Exception] = None

        async with httpx.AsyncClient(timeout=self.settings.PHONEPE_TIMEOUT_SECONDS, transport=self.transport) as client:
            for attempt in range(1, attempts + 1):
                logger.info(f"📡 PhonePe {method} {path} (attempt {attempt}/{attempts})")
                try:
                    return await client.request(method, url, headers=headers, json=body)
                except httpx.TransportError as e:
                    last_error = e
                    logger.warning(f"⚠️ PhonePe {method} {path} attempt {attempt}/{attempts} failed: {e!r}")
                    if attempt < attempts:
                        await asyncio.sleep(self.retry_backoff * attempt)

        raise GatewayError("Payment gateway is unreachable. Please try again.", retryable=True) from last_error


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
