# storefront/services/exchange_rate_service.py
from decimal import Decimal

import redis
import requests
from redis.exceptions import RedisError
from requests import RequestException

from storefront.domain.errors import ExchangeRateError
from storefront.utils.retry import http_retry
from storefront.utils.settings import (
    REDIS_URL,
    EXCHANGE_RATE_URL,
    EXCHANGE_RATE_TTL_SECONDS,
    BASE_CURRENCY,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class ExchangeRateService:
    """
    Kursy BASE_CURRENCY -> waluta z publicznego API.
    Cache w redis (klucz fx:<BASE>:<CODE>), awaria redisa = pobranie na zywo.
    """

    def __init__(
        self,
        url: str | None = None,
        redis_client: redis.Redis | None = None,
        ttl: int = EXCHANGE_RATE_TTL_SECONDS,
        timeout: int = 10,
    ):
        self.url = url or EXCHANGE_RATE_URL
        self.redis = redis_client if redis_client is not None else redis.Redis.from_url(
            REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl
        self.timeout = timeout

    @staticmethod
    def _key(code: str) -> str:
        return f"fx:{BASE_CURRENCY}:{code}"

    def _cached(self, code: str) -> Decimal | None:
        try:
            value = self.redis.get(self._key(code))
        except RedisError as e:
            logger.warning(f"Exchange rate cache read failed: {e}")
            return None
        return Decimal(value) if value else None

    def _store(self, rates: dict):
        try:
            pipe = self.redis.pipeline()
            for code, rate in rates.items():
                pipe.set(self._key(code), str(rate), ex=self.ttl)
            pipe.execute()
        except RedisError as e:
            logger.warning(f"Exchange rate cache write failed: {e}")

    @http_retry()
    def _fetch_rates(self) -> dict:
        logger.info(f"Fetching exchange rates from {self.url}")
        resp = requests.get(self.url, timeout=self.timeout)
        resp.raise_for_status()
        body = resp.json()
        rates = body.get("rates")
        if not isinstance(rates, dict):
            raise ExchangeRateError("Invalid response format from exchange rate API")
        return rates

    def get_rate(self, currency: str) -> Decimal:
        code = currency.upper()
        if code == BASE_CURRENCY:
            return Decimal("1")

        cached = self._cached(code)
        if cached is not None:
            return cached

        try:
            rates = self._fetch_rates()
        except RequestException as e:
            logger.error(f"Exchange rate fetch failed: {e}")
            raise ExchangeRateError("Could not fetch exchange rates") from e

        self._store(rates)

        if code not in rates:
            raise ExchangeRateError(f"Currency {code} not found in exchange rates")
        return Decimal(str(rates[code]))
