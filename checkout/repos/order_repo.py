# checkout/repos/order_repo.py
from sqlalchemy.orm import Session

from checkout.data.models.order import OrderModel
from checkout.domain.schemas import OrderProjection, PriceBreakdown


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def upsert_projection(self, order: OrderProjection, session_id: str | None = None) -> OrderModel:
        row = self.get_order(order.id) or OrderModel(id=order.id)

        row.intent_id = order.intent_id or row.intent_id
        row.session_id = session_id or row.session_id
        row.order_number = order.order_number
        row.status = order.status
        row.payment_status = order.payment_status
        row.subtotal = order.breakdown.subtotal
        row.government_tax = order.breakdown.government_tax
        row.platform_fee = order.breakdown.platform_fee
        row.total = order.breakdown.total
        row.currency = order.currency
        row.paid_at = order.paid_at

        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def to_projection(self, row: OrderModel) -> OrderProjection:
        return OrderProjection(
            id=row.id,
            order_number=row.order_number,
            intent_id=row.intent_id,
            status=row.status,
            payment_status=row.payment_status,
            breakdown=PriceBreakdown(
                subtotal=row.subtotal,
                government_tax=row.government_tax,
                platform_fee=row.platform_fee,
                total=row.total,
            ),
            currency=row.currency,
            paid_at=row.paid_at,
        )
