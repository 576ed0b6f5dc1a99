# checkout/data/models/cart_line.py
from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from checkout.data.database import Base


class CartLineModel(Base):
    __tablename__ = "cart_lines"

    id = Column(Integer, primary_key=True)
    session_id = Column(String(64), ForeignKey("carts.session_id", ondelete="CASCADE"), nullable=False, index=True)
    line_id = Column(Integer, nullable=False)
    product_id = Column(Integer, nullable=False)

    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    added_at = Column(DateTime(timezone=True), nullable=False)

    cart = relationship("CartModel", back_populates="lines")

    __table_args__ = (UniqueConstraint("session_id", "line_id", name="u_session_line"),)
