# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import ConcurrencyError, NotFoundError
from storefront.domain.schemas import CartItemIn, CartItemUpdate, CartOut
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


def _translate(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConcurrencyError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=CartOut)
def get_cart(user_id: int = Query(..., gt=0), db: Session = Depends(get_db)):
    svc = get_service(db)
    return svc.get_cart(user_id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.add_item(
            user_id=user_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            size=payload.size,
        )
    except (ValueError, NotFoundError, ConcurrencyError) as e:
        raise _translate(e)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.update_item(user_id, item_id, payload.quantity)
    except (ValueError, NotFoundError, ConcurrencyError) as e:
        raise _translate(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.remove_item(user_id, item_id)
    except (NotFoundError, ConcurrencyError) as e:
        raise _translate(e)


@router.delete("", response_model=CartOut)
def clear_cart(user_id: int = Query(..., gt=0), db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return svc.clear_cart(user_id)
    except ConcurrencyError as e:
        raise _translate(e)
