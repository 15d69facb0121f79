# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import (
    ConcurrencyError,
    EmptyCartError,
    NotFoundError,
    OrderCreationError,
)
from storefront.domain.schemas import OrderCreate, OrderOut, OrderStatusUpdate, PaymentStatusUpdate
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
):
    """
    Tworzy zamowienie z koszyka uzytkownika i czysci koszyk.
    """
    svc = get_service(db)
    try:
        return svc.create_order_from_cart(
            user_id=payload.user_id,
            shipping_address=payload.shipping_address,
            shipping_method=payload.shipping_method,
            payment_method=payload.payment_method,
            currency_code=payload.currency_code,
            currency_rate=payload.currency_rate,
        )
    except ConcurrencyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OrderCreationError:
        raise HTTPException(status_code=500, detail="Failed to create order")
    except (EmptyCartError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/user/{user_id}", response_model=list[OrderOut])
def list_user_orders(user_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    return svc.list_user_orders(user_id)


@router.get("/number/{order_number}", response_model=OrderOut)
def get_order_by_number(
    order_number: str,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.get_order_by_number(order_number, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    """
    Pobiera szczegoly zamowienia.
    """
    svc = get_service(db)
    try:
        return svc.get_order(order_id, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.update_status(order_id, payload.status)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{order_id}/payment-status", response_model=OrderOut)
def update_payment_status(
    order_id: int,
    payload: PaymentStatusUpdate,
    db: Session = Depends(get_db),
):
    """
    Reczne potwierdzenie platnosci, np. przelewu bankowego.
    """
    svc = get_service(db)
    try:
        return svc.update_payment_status(order_id, payload.payment_status, payload.reference)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
