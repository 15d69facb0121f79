# storefront/api/routers/webhooks.py
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import GatewayError, InvalidSignatureError
from storefront.domain.schemas import WebhookAck
from storefront.services.paystack_client import PaystackGateway
from storefront.services.reconciliation_service import ReconciliationService, SIGNATURE_HEADER
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_service(db: Session):
    return ReconciliationService(db, gateway=PaystackGateway())


@router.post("/paystack", response_model=WebhookAck)
async def paystack_webhook(request: Request, db: Session = Depends(get_db)):
    # podpis liczony z surowego body, nie z przeparsowanego jsona
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    svc = get_service(db)
    try:
        return await run_in_threadpool(svc.handle_webhook, raw_body, signature)
    except InvalidSignatureError as e:
        logger.warning(f"Rejected Paystack webhook: {e}")
        raise HTTPException(status_code=401, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
