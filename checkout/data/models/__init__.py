#import all models so SQLAlchemy registers them in Base.metadata

from checkout.data.models.cart import CartModel
from checkout.data.models.cart_line import CartLineModel
from checkout.data.models.attempt import SettlementAttemptModel
from checkout.data.models.order import OrderModel

__all__ = ["CartModel", "CartLineModel", "SettlementAttemptModel", "OrderModel"]
