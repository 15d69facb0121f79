# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysylania powiadomien.
    Uzywa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def send_payment_confirmation(order_number: str, user_id: int | None):
        """
        Powiadomienie o oplaconym zamowieniu, wysylane po commicie platnosci.
        """
        send_payment_confirmation_task.delay(order_number, user_id)


@celery_app.task(name="storefront.services.notification_service.send_payment_confirmation_task")
def send_payment_confirmation_task(order_number: str, user_id: int | None):
    """
    Celery task - w prawdziwym systemie wyslalby email z linkiem do potwierdzenia.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: payment received for order {order_number}")

    return {"user_id": user_id, "order_number": order_number, "status": "sent"}
