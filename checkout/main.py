# checkout/main.py
from checkout.api import create_app
from checkout.data.database import Base, engine
from checkout.utils.logging import get_logger
import uvicorn

logger = get_logger(__name__)

#models must be imported before create_all
from checkout.data.models.cart import CartModel  # noqa: F401,E402
from checkout.data.models.cart_line import CartLineModel  # noqa: F401,E402
from checkout.data.models.attempt import SettlementAttemptModel  # noqa: F401,E402
from checkout.data.models.order import OrderModel  # noqa: F401,E402

print("=" * 80)
print("INITIALIZING DATABASE...")
print(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
print("=" * 80)

try:
    Base.metadata.create_all(bind=engine)
    print("DATABASE TABLES CREATED SUCCESSFULLY")
    print("=" * 80)
except Exception as e:
    logger.error(f"Failed to create tables: {e}")
    print("=" * 80)
    raise


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
