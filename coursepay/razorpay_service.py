import hashlib
import hmac
from typing import Any, Dict, Optional

from fastapi import Request

from coursepay.config import Settings
from coursepay.logger import get_logger

logger = get_logger(__name__)

CURRENCY = "INR"
MINOR_UNITS_PER_MAJOR = 100  # paise per rupee


def expected_signature(order_id: str, payment_id: str, key_secret: str) -> str:
    body = f"{order_id}|{payment_id}"
    return hmac.new(key_secret.encode(), body.encode(), hashlib.sha256).hexdigest()


def signature_matches(order_id: str, payment_id: str, signature: str, key_secret: str) -> bool:
    expected = expected_signature(order_id, payment_id, key_secret)
    return hmac.compare_digest(expected.encode(), signature.encode())


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str):
        # Only loaded when credentials are configured
        import razorpay

        self.key_id = key_id
        self.key_secret = key_secret
        self._client = razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount: int, receipt: str, notes: Dict[str, Any]) -> Dict[str, Any]:
        return self._client.order.create(
            data={
                "amount": amount * MINOR_UNITS_PER_MAJOR,
                "currency": CURRENCY,
                "receipt": receipt,
                "notes": notes,
            }
        )


def build_gateway(settings: Settings) -> Optional[RazorpayGateway]:
    if not settings.razorpay_configured:
        logger.warning("Razorpay credentials not found - payment features will be disabled")
        return None
    gateway = RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret)
    logger.info("Razorpay initialized")
    return gateway


def get_payment_gateway(request: Request) -> Optional[RazorpayGateway]:
    return request.app.state.payment_gateway
