# checkout/services/notification_service.py
from checkout.celery_worker import celery_app
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Queues user-facing notifications, the worker does the sending."""

    @staticmethod
    def send_order_confirmed(session_id: str, order_id: int, total: str):
        send_order_confirmed_task.delay(session_id, order_id, total)


@celery_app.task(name="checkout.services.notification_service.send_order_confirmed_task")
def send_order_confirmed_task(session_id: str, order_id: int, total: str):
    logger.info(f"[NOTIFICATION] Session {session_id}: order {order_id} confirmed, total {total}")
    return {"session_id": session_id, "order_id": order_id, "status": "sent"}
