"""
Signup/login and payment order workflows.

Each service receives its collaborators explicitly; routes build them per
request from the session and the handles kept on ``app.state``.
"""
import time
from typing import Any, Dict, List, Optional, Tuple

from coursepay.auth import AuthenticatedUser
from coursepay.errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    IntegrationError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from coursepay.logger import get_logger
from coursepay.models import Payment, PaymentStatus
from coursepay.razorpay_service import MINOR_UNITS_PER_MAJOR, RazorpayGateway, signature_matches
from coursepay.security import PasswordHasher, TokenService
from coursepay.store import DUPLICATE_EMAIL_MESSAGE, PaymentStore, UserStore

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72  # bcrypt ignores or rejects anything longer
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"

COUPON_CODE = "UPSKILL50"
REDIRECT_URL = "https://www.udemy.com/course/the-complete-web-development-bootcamp/"

# Payments.amount is a 32-bit INTEGER and the provider receives minor units
MAX_AMOUNT = (2**31 - 1) // MINOR_UNITS_PER_MAJOR


def _all_text(*values: Any) -> bool:
    return all(isinstance(value, str) and value for value in values)


class AuthService:
    def __init__(self, users: UserStore, hasher: PasswordHasher, tokens: TokenService):
        self.users = users
        self.hasher = hasher
        self.tokens = tokens

    def signup(
        self, name: Optional[str], email: Optional[str], password: Optional[str]
    ) -> Tuple[AuthenticatedUser, str]:
        if not _all_text(name, email, password):
            raise ValidationError("Please provide name, email, and password")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")

        try:
            if self.users.email_exists(email):
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

            user = self.users.create(name, email, self.hasher.hash(password))
            token = self.tokens.issue(user.id)
        except AppError:
            raise
        except Exception as e:
            logger.exception("Signup failed for %s", email)
            raise InternalError("Registration failed") from e

        logger.info("User %s registered", user.id)
        return AuthenticatedUser.from_model(user), token

    def login(self, email: Optional[str], password: Optional[str]) -> Tuple[AuthenticatedUser, str]:
        if not _all_text(email, password):
            raise ValidationError("Please provide email and password")

        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            # Never a registered password; still spend one verification
            truncated = password.encode("utf-8")[:MAX_PASSWORD_BYTES].decode("utf-8", "ignore")
            self.hasher.verify_dummy(truncated)
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        try:
            user = self.users.get_by_email(email)
            if user is None:
                self.hasher.verify_dummy(password)
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
            if not self.hasher.verify(password, user.password_hash):
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

            token = self.tokens.issue(user.id)
        except AppError:
            raise
        except Exception as e:
            logger.exception("Login failed")
            raise InternalError("Login failed") from e

        logger.info("User %s logged in", user.id)
        return AuthenticatedUser.from_model(user), token


def _parse_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError("Valid amount is required")
    if isinstance(amount, float):
        if not amount.is_integer():
            raise ValidationError("Valid amount is required")
        amount = int(amount)
    if amount < 1 or amount > MAX_AMOUNT:
        raise ValidationError("Valid amount is required")
    return amount


class PaymentService:
    def __init__(self, payments: PaymentStore, gateway: Optional[RazorpayGateway]):
        self.payments = payments
        self.gateway = gateway

    def _require_gateway(self) -> RazorpayGateway:
        if self.gateway is None:
            raise IntegrationError("Payment service not configured")
        return self.gateway

    # 1) Create Razorpay order and a pending local Payment
    def create_order(self, user: AuthenticatedUser, amount: Any) -> Dict[str, Any]:
        gateway = self._require_gateway()
        amount = _parse_amount(amount)

        receipt = f"user_{user.id}_{int(time.time() * 1000)}"
        try:
            order = gateway.create_order(
                amount,
                receipt=receipt,
                notes={"userId": user.id, "userName": user.name},
            )
        except Exception as e:
            logger.exception("Razorpay order creation failed for user %s", user.id)
            raise IntegrationError("Failed to create payment order") from e

        try:
            payment = self.payments.create(user.id, order["id"], amount)
        except Exception as e:
            logger.exception("Could not store order %s for user %s", order.get("id"), user.id)
            raise InternalError("Failed to create payment order") from e

        logger.info("Order %s created for user %s (payment %s)", order["id"], user.id, payment.id)
        return {"order": order, "amount": amount}

    # 2) Verify the checkout signature and complete the Payment
    def verify(
        self,
        user: AuthenticatedUser,
        order_id: Optional[str],
        payment_id: Optional[str],
        signature: Optional[str],
    ) -> Dict[str, str]:
        gateway = self._require_gateway()
        if not order_id or not payment_id or not signature:
            raise ValidationError(
                "Please provide razorpay_order_id, razorpay_payment_id and razorpay_signature"
            )

        if not signature_matches(order_id, payment_id, signature, gateway.key_secret):
            logger.warning("Signature mismatch for order %s, user %s", order_id, user.id)
            raise ValidationError("Payment verification failed")

        try:
            payment = self.payments.find_for_user(user.id, order_id)
            if payment is None:
                raise NotFoundError("Payment record not found")

            if payment.status == PaymentStatus.COMPLETED.value:
                logger.info("Payment %s already completed", payment.id)
            else:
                self.payments.mark_completed(payment, payment_id, signature)
                logger.info("Payment %s verified for user %s", payment.id, user.id)
        except AppError:
            raise
        except Exception as e:
            logger.exception("Payment verification failed for order %s", order_id)
            raise InternalError("Payment verification failed") from e

        return {"couponCode": COUPON_CODE, "redirectUrl": REDIRECT_URL}

    # 3) Newest first
    def history(self, user: AuthenticatedUser) -> List[Payment]:
        try:
            return self.payments.list_for_user(user.id)
        except Exception as e:
            logger.exception("Could not load payment history for user %s", user.id)
            raise InternalError("Failed to fetch payment history") from e
