# storefront/tasks/maintenance.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.services.paystack_client import PaystackGateway
from storefront.services.reconciliation_service import ReconciliationService
from storefront.services.token_service import TokenService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="storefront.tasks.maintenance.purge_expired_tokens_task")
def purge_expired_tokens_task():
    logger.info("Purge expired tokens task started")

    db = SessionLocal()
    try:
        return TokenService(db).purge_expired()
    finally:
        db.close()


@celery_app.task(name="storefront.tasks.maintenance.retry_unmatched_payments_task")
def retry_unmatched_payments_task():
    logger.info("Retry unmatched payments task started")

    db = SessionLocal()
    try:
        service = ReconciliationService(db, gateway=PaystackGateway())
        return service.retry_unmatched()
    finally:
        db.close()
