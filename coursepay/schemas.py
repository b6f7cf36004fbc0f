from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class SignupRequest(BaseModel):
    # Checked by AuthService, so non-string values get the usual messages
    name: Any = None
    email: Any = None
    password: Any = None


class LoginRequest(BaseModel):
    email: Any = None
    password: Any = None


class UserRead(BaseModel):
    id: int
    name: str
    email: str


class AuthData(BaseModel):
    user: UserRead
    token: str


class MeData(BaseModel):
    user: UserRead


class CreateOrderRequest(BaseModel):
    # Validated by PaymentService so that every bad amount gets the same message
    amount: Any = None


class CreateOrderData(BaseModel):
    order: Dict[str, Any]
    amount: int


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class RewardData(BaseModel):
    couponCode: str
    redirectUrl: str


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: int
    status: str
    verified: bool
    created_at: Optional[datetime] = None
    razorpay_payment_id: Optional[str] = None


class PaymentHistoryData(BaseModel):
    payments: List[PaymentRead]
