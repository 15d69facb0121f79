# storefront/repos/token_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update, delete, case
from sqlalchemy.orm import Session

from storefront.data.models.verification_token import VerificationTokenModel


class TokenRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_token(self, token: VerificationTokenModel) -> VerificationTokenModel:
        self.db.add(token)
        self.db.flush()
        return token

    def get_by_token(self, token: str) -> VerificationTokenModel | None:
        return self.db.execute(
            select(VerificationTokenModel).where(VerificationTokenModel.token == token)
        ).scalars().first()

    def get_latest_for_order(self, order_number: str) -> VerificationTokenModel | None:
        return self.db.execute(
            select(VerificationTokenModel)
            .where(VerificationTokenModel.order_number == order_number)
            .order_by(VerificationTokenModel.created_at.desc(), VerificationTokenModel.id.desc())
        ).scalars().first()

    def consume(self, order_number: str, token: str, max_uses: int) -> int:
        """
        Jedno uzycie tokenu jako jeden UPDATE: warunki waznosci w WHERE,
        used=True gdy licznik dojdzie do max_uses.
        """
        now = datetime.now(timezone.utc)
        result = self.db.execute(
            update(VerificationTokenModel)
            .where(
                VerificationTokenModel.order_number == order_number,
                VerificationTokenModel.token == token,
                VerificationTokenModel.expires_at > now,
                VerificationTokenModel.used.is_(False),
                VerificationTokenModel.usage_count < max_uses,
            )
            .values(
                usage_count=VerificationTokenModel.usage_count + 1,
                used=case(
                    (VerificationTokenModel.usage_count + 1 >= max_uses, True),
                    else_=False,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_expired(self) -> int:
        now = datetime.now(timezone.utc)
        result = self.db.execute(
            delete(VerificationTokenModel).where(VerificationTokenModel.expires_at <= now)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
