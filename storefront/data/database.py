# storefront/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from storefront.utils.settings import DATABASE_URL


def _make_engine(url: str):
    # sqlite tylko lokalnie i w testach, jedno polaczenie dla :memory:
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
    )


engine = _make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: sesja na request, zamykana po odpowiedzi."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # import modeli rejestruje tabele w Base.metadata
    import storefront.data.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
