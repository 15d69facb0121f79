# storefront/api/routers/payments.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import (
    ExchangeRateError,
    GatewayError,
    GatewayUnavailableError,
    NotFoundError,
)
from storefront.domain.schemas import (
    PaymentInitIn,
    PaymentInitOut,
    TokenOut,
    VerifyPaymentOut,
    VerifyTokenIn,
    VerifyTokenOut,
)
from storefront.services.exchange_rate_service import ExchangeRateService
from storefront.services.order_service import OrderService, serialize_order
from storefront.services.payment_service import PaymentService
from storefront.services.paystack_client import PaystackGateway
from storefront.services.reconciliation_service import ReconciliationService
from storefront.services.token_service import TokenService
from storefront.repos.order_repo import OrderRepo

router = APIRouter(prefix="/payments", tags=["payments"])


def get_service(db: Session):
    return PaymentService(db, gateway=PaystackGateway(), rates=ExchangeRateService())


def get_reconciler(db: Session):
    return ReconciliationService(db, gateway=PaystackGateway())


def _gateway_exception(e: Exception) -> HTTPException:
    if isinstance(e, (GatewayUnavailableError, ExchangeRateError)):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.post("/initialize", response_model=PaymentInitOut)
def initialize_payment(payload: PaymentInitIn, db: Session = Depends(get_db)):
    """
    Startuje platnosc w bramce, zwraca adres hosted payment page.
    """
    svc = get_service(db)
    try:
        return svc.initialize_payment(
            order_id=payload.order_id,
            user_id=payload.user_id,
            currency_code=payload.currency_code,
            currency_rate=payload.currency_rate,
            callback_url=payload.callback_url,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except (GatewayError, ExchangeRateError) as e:
        raise _gateway_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/verify", response_model=VerifyPaymentOut)
def verify_payment(reference: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """
    Weryfikacja po powrocie klienta z bramki. Idempotentna.
    """
    svc = get_reconciler(db)
    try:
        return svc.verify_callback(reference)
    except GatewayError as e:
        raise _gateway_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/verify-token", response_model=VerifyTokenOut)
def verify_token(payload: VerifyTokenIn, db: Session = Depends(get_db)):
    tokens = TokenService(db)

    if not tokens.verify_token(payload.order_number, payload.token):
        return {
            "valid": False,
            "message": "Invalid or expired token",
            "usage": tokens.get_token_usage(payload.token, payload.order_number),
        }

    order = OrderRepo(db).get_order_by_number(payload.order_number)
    return {
        "valid": True,
        "message": "Token verified successfully" if order else "Token verified, but order not found",
        "order": serialize_order(order) if order else None,
        "usage": tokens.get_token_usage(payload.token, payload.order_number),
    }


@router.get("/token", response_model=TokenOut)
def get_token(
    order_number: str = Query(..., min_length=1),
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    #tylko wlasciciel zamowienia
    try:
        OrderService(db).get_order_by_number(order_number, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    token = TokenService(db).get_token_for_order(order_number)
    if not token:
        raise HTTPException(status_code=404, detail="No token found for this order")

    return {"order_number": order_number, "token": token}
