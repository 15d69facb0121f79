# storefront/domain/errors.py
"""
Wyjatki domenowe. Dziedzicza po wbudowanych (ValueError, LookupError,
RuntimeError), wiec routery mapuja je tak samo jak reszte serwisu.
"""


class ValidationError(ValueError):
    """Brakujace lub niepoprawne dane wejsciowe, bez efektow ubocznych."""


class NotFoundError(LookupError):
    """Zamowienie, token, koszyk albo produkt nie istnieje."""


class EmptyCartError(ValueError):
    pass


class ConcurrencyError(RuntimeError):
    pass


class OrderCreationError(RuntimeError):
    """Transakcja tworzenia zamowienia zostala wycofana."""


class GatewayError(RuntimeError):
    """Bramka platnosci odrzucila zadanie."""

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class GatewayUnavailableError(GatewayError):
    """Timeout, blad polaczenia albo 5xx - mozna ponowic."""


class CurrencyNotSupportedError(GatewayError):
    pass


class ExchangeRateError(RuntimeError):
    pass


class InvalidSignatureError(PermissionError):
    pass
