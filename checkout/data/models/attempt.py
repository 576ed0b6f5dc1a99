# checkout/data/models/attempt.py
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Numeric

from checkout.data.database import Base


class SettlementAttemptModel(Base):
    __tablename__ = "settlement_attempts"

    attempt_id = Column(String(32), primary_key=True)
    session_id = Column(String(64), nullable=False, index=True)
    intent_id = Column(String(100), nullable=True, index=True)
    idempotency_token = Column(String(64), nullable=True)

    state = Column(String(40), nullable=False)  # CheckoutState value
    total = Column(Numeric(12, 2), nullable=True)
    error_code = Column(String(40), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
