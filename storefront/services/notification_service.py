# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications.
    Delivery happens in a Celery worker, callers only enqueue.
    """

    @staticmethod
    def send_order_notification(user_id: int, order_id: str, event: str = "order_created"):
        send_order_notification_task.delay(user_id, order_id, event)


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: str, event: str = "order_created"):
    # email / sms delivery is an external collaborator, the worker only records the event
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} {event}")
    return {"user_id": user_id, "order_id": order_id, "event": event, "status": "sent"}
