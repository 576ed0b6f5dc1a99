# checkout/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Numeric

from checkout.data.database import Base


class OrderModel(Base):
    """Local copy of a confirmed order. Written from authority responses only."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=False)
    intent_id = Column(String(100), nullable=True, unique=True)
    session_id = Column(String(64), nullable=True, index=True)
    order_number = Column(String(64), nullable=True)

    status = Column(String(20), nullable=False)  # pending, confirmed, canceled
    payment_status = Column(String(20), nullable=False)  # pending, succeeded, failed, canceled

    subtotal = Column(Numeric(12, 2), nullable=False)
    government_tax = Column(Numeric(12, 2), nullable=False)
    platform_fee = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
