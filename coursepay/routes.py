from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from coursepay.auth import AuthenticatedUser, get_current_user, get_token_service
from coursepay.database import get_db
from coursepay.errors import envelope
from coursepay.razorpay_service import RazorpayGateway, get_payment_gateway
from coursepay.schemas import (
    AuthData,
    CreateOrderData,
    CreateOrderRequest,
    LoginRequest,
    MeData,
    PaymentHistoryData,
    PaymentRead,
    RewardData,
    SignupRequest,
    UserRead,
    VerifyPaymentRequest,
)
from coursepay.security import PasswordHasher, TokenService
from coursepay.services import AuthService, PaymentService
from coursepay.store import PaymentStore, UserStore

auth_router = APIRouter(prefix="/api/auth", tags=["Auth"])
payment_router = APIRouter(prefix="/api/payments", tags=["Payments"])


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_auth_service(
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(UserStore(db), hasher, tokens)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: Optional[RazorpayGateway] = Depends(get_payment_gateway),
) -> PaymentService:
    return PaymentService(PaymentStore(db), gateway)


def _auth_payload(user: AuthenticatedUser, token: str) -> dict:
    return AuthData(user=UserRead(**user.to_dict()), token=token).model_dump()


@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, service: AuthService = Depends(get_auth_service)):
    user, token = service.signup(request.name, request.email, request.password)
    return envelope(_auth_payload(user, token), message="User registered successfully")


@auth_router.post("/login")
def login(request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    user, token = service.login(request.email, request.password)
    return envelope(_auth_payload(user, token), message="Login successful")


@auth_router.get("/me")
def me(user: AuthenticatedUser = Depends(get_current_user)):
    return envelope(MeData(user=UserRead(**user.to_dict())).model_dump())


@payment_router.post("/create-order")
def create_order(
    request: CreateOrderRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    result = service.create_order(user, request.amount)
    return envelope(CreateOrderData(**result).model_dump())


@payment_router.post("/verify")
def verify_payment(
    request: VerifyPaymentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    reward = service.verify(
        user,
        request.razorpay_order_id,
        request.razorpay_payment_id,
        request.razorpay_signature,
    )
    return envelope(RewardData(**reward).model_dump(), message="Payment verified successfully")


@payment_router.get("/history")
def payment_history(
    user: AuthenticatedUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    payments = [PaymentRead.model_validate(p) for p in service.history(user)]
    return envelope(PaymentHistoryData(payments=payments).model_dump(mode="json"))
