"""
Credential store access: users and their payments.

Uniqueness of e-mail and the created -> completed transition rely on the
database's own constraints and transactions.
"""
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coursepay.errors import ConflictError
from coursepay.models import Payment, PaymentStatus, User, utcnow

DUPLICATE_EMAIL_MESSAGE = "User with this email already exists"


class UserStore:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def email_exists(self, email: str) -> bool:
        return self.db.query(User.id).filter(User.email == email).first() is not None

    def create(self, name: str, email: str, password_hash: str) -> User:
        user = User(name=name, email=email, password_hash=password_hash)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent signup for the same e-mail
            self.db.rollback()
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from exc
        self.db.refresh(user)
        return user


class PaymentStore:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: int, order_id: str, amount: int) -> Payment:
        payment = Payment(
            user_id=user_id,
            razorpay_order_id=order_id,
            amount=amount,
            status=PaymentStatus.CREATED.value,
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def find_for_user(self, user_id: int, order_id: str) -> Optional[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id, Payment.razorpay_order_id == order_id)
            .first()
        )

    def mark_completed(self, payment: Payment, payment_id: str, signature: str) -> Payment:
        payment.razorpay_payment_id = payment_id
        payment.razorpay_signature = signature
        payment.verified = True
        payment.status = PaymentStatus.COMPLETED.value
        payment.verified_at = utcnow()
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def list_for_user(self, user_id: int) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )
