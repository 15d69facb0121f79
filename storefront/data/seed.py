# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal, init_db
from storefront.data.models import ProductModel, UserModel

PRODUCTS = [
    ("Classic T-Shirt", Decimal("10.00")),
    ("Denim Jacket", Decimal("59.90")),
    ("Running Shoes", Decimal("84.50")),
    ("Wool Scarf", Decimal("19.99")),
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return

        db.add_all(ProductModel(name=name, price=price) for name, price in PRODUCTS)
        db.add(
            UserModel(
                first_name="Demo",
                last_name="Customer",
                email="demo@example.com",
                phone="+2348000000000",
            )
        )
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
