# checkout/repos/cart_repo.py
from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from checkout.data.models.cart import CartModel
from checkout.data.models.cart_line import CartLineModel
from checkout.domain.cart import CartAggregate, LineItem
from checkout.domain.errors import ConcurrentModification


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, session_id: str) -> CartModel | None:
        return self.db.get(CartModel, session_id)

    def create_cart(self, session_id: str, currency: str) -> CartModel:
        cart = CartModel(session_id=session_id, currency=currency, version=1)
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def load(self, session_id: str) -> Tuple[CartAggregate, int] | None:
        cart = self.get_cart(session_id)
        if not cart:
            return None

        lines = [
            LineItem(
                line_id=l.line_id,
                product_id=l.product_id,
                unit_price=l.unit_price,
                quantity=l.quantity,
                currency=l.currency,
                added_at=l.added_at,
            )
            for l in cart.lines
        ]
        return CartAggregate.from_lines(lines, currency=cart.currency), cart.version

    def update_cart_version(self, session_id: str, old_version: int, new_data: dict) -> int:
        #UPDATE carts SET version = 2 WHERE session_id = 'abc' AND version = 1
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.session_id == session_id, CartModel.version == old_version)
            .values(**new_data)
        )
        return result.rowcount

    def save(self, session_id: str, cart: CartAggregate, version: int) -> int:
        """Replace the stored lines with the aggregate's lines. Returns the new version."""
        rowcount = self.update_cart_version(
            session_id=session_id,
            old_version=version,
            new_data={
                "version": version + 1,
                "currency": cart.currency,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        if rowcount == 0:
            self.db.rollback()
            raise ConcurrentModification(
                f"Cart {session_id} was modified by another operation"
            )

        self.db.execute(delete(CartLineModel).where(CartLineModel.session_id == session_id))
        for line in cart.items:
            self.db.add(
                CartLineModel(
                    session_id=session_id,
                    line_id=line.line_id,
                    product_id=line.product_id,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    currency=line.currency,
                    added_at=line.added_at,
                )
            )

        self.db.commit()
        self.db.expire_all()
        return version + 1
