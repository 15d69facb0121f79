# storefront/services/token_service.py
import secrets
from datetime import datetime, timezone, timedelta
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.verification_token import VerificationTokenModel
from storefront.repos.token_repo import TokenRepo
from storefront.utils.settings import TOKEN_TTL_SECONDS, TOKEN_MAX_USES
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


class TokenService:
    """
    Tokeny odblokowujace widok potwierdzenia zamowienia bez logowania.
    -waznosc 24h
    -maksymalnie TOKEN_MAX_USES udanych uzyc, ostatnie ustawia used=True
    """

    def __init__(self, db: Session, ttl_seconds: int = TOKEN_TTL_SECONDS, max_uses: int = TOKEN_MAX_USES):
        self.repo = TokenRepo(db)
        self.ttl_seconds = ttl_seconds
        self.max_uses = max_uses

    def issue_token(self, order_id: int, order_number: str, commit: bool = True) -> Dict[str, Any]:
        """commit=False gdy token jest czescia wiekszej transakcji (rekoncyliacja)."""
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)

        created = self.repo.add_token(
            VerificationTokenModel(
                order_id=order_id,
                order_number=order_number,
                token=generate_token(),
                expires_at=expires_at,
                used=False,
                usage_count=0,
            )
        )
        if commit:
            self.repo.commit()

        logger.info(f"Verification token {created.id} issued for order {order_number}")
        return {"token": created.token, "expires_at": expires_at}

    def verify_token(self, order_number: str, token: str) -> bool:
        rowcount = self.repo.consume(order_number, token, self.max_uses)
        self.repo.commit()

        if rowcount == 0:
            logger.info(f"No valid token found for order {order_number}")
            return False

        return True

    def get_token_usage(self, token: str, order_number: str | None = None) -> Dict[str, int] | None:
        row = self.repo.get_by_token(token)
        if not row:
            return None

        # token innego zamowienia, nie zdradzamy licznika
        if order_number is not None and row.order_number != order_number:
            return None

        return {
            "usage_count": row.usage_count,
            "max_uses": self.max_uses,
            "remaining": max(self.max_uses - row.usage_count, 0),
        }

    def get_token_for_order(self, order_number: str) -> str | None:
        row = self.repo.get_latest_for_order(order_number)
        return row.token if row else None

    def purge_expired(self) -> int:
        removed = self.repo.delete_expired()
        self.repo.commit()
        logger.info(f"Purged {removed} expired verification tokens")
        return removed
