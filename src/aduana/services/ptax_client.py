"""PTAX reference rates (BRL per unit of foreign currency).

``PtaxClient`` talks to the Banco Central OData service; ``ExchangeRateTable``
holds the fetched quotes and refuses to hand out missing or stale rates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

import requests

from aduana.config import BRT, PTAX_LOOKBACK_DAYS, PTAX_MAX_AGE_DAYS, PTAX_TIMEOUT, PTAX_URL
from aduana.models.ledger import Currency
from aduana.services.exceptions import MissingExchangeRateError, StaleExchangeRateError
from aduana.services.http_retry import PTAX_READ, raise_for_status, retry_call
from aduana.utils.validators import parse_decimal

logger = logging.getLogger(__name__)

CLOSING_BULLETIN = "Fechamento PTAX"


@dataclass(frozen=True)
class PtaxQuote:
    currency: Currency
    rate: Decimal
    quoted_at: datetime


def _parse_quoted_at(value: str) -> datetime:
    dt = datetime.fromisoformat(value.strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=BRT)
    return dt


class PtaxClient:
    """Fetch closing PTAX sell rates from the Banco Central API."""

    def __init__(self, session: requests.Session | None = None, timeout: int = PTAX_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, currency: Currency, day: date) -> str:
        return (
            f"{PTAX_URL}?@moeda='{currency.value}'"
            f"&@dataCotacao='{day.strftime('%m-%d-%Y')}'&$format=json"
        )

    def fetch_day(self, currency: Currency, day: date) -> PtaxQuote | None:
        """Closing quote for one day, or None when the bulletin is empty (weekend/holiday)."""

        def _do_get():
            resp = self.session.get(self._url(currency, day), timeout=self.timeout)
            raise_for_status(resp, PTAX_READ, "PTAX")
            return resp

        data = retry_call(_do_get, PTAX_READ, action=f"PTAX {currency.value} {day}").json()
        bulletins = data.get("value") or []
        if not bulletins:
            return None
        closing = next(
            (b for b in bulletins if b.get("tipoBoletim") == CLOSING_BULLETIN), bulletins[-1]
        )
        return PtaxQuote(
            currency=currency,
            rate=parse_decimal(closing["cotacaoVenda"], "PTAX"),
            quoted_at=_parse_quoted_at(closing["dataHoraCotacao"]),
        )

    def fetch(self, currency: Currency, on: date | None = None) -> PtaxQuote:
        """Latest closing quote on or before ``on``, walking back over non-business days."""
        day = on or datetime.now(BRT).date()
        for _ in range(PTAX_LOOKBACK_DAYS):
            quote = self.fetch_day(currency, day)
            if quote is not None:
                return quote
            logger.debug("No PTAX bulletin for %s on %s", currency.value, day)
            day -= timedelta(days=1)
        raise MissingExchangeRateError(
            f"Nenhuma cotação PTAX para {currency.value} nos últimos {PTAX_LOOKBACK_DAYS} dias",
            currency=currency.value,
        )


class ExchangeRateTable:
    """Currency -> PTAX quote, with a freshness check on every read."""

    def __init__(
        self,
        quotes: Iterable[PtaxQuote] = (),
        max_age: timedelta | None = timedelta(days=PTAX_MAX_AGE_DAYS),
    ) -> None:
        self._quotes = {q.currency: q for q in quotes}
        self.max_age = max_age

    def get(self, currency: Currency, now: datetime | None = None) -> Decimal:
        """BRL value of one unit of ``currency``.

        Raises MissingExchangeRateError when there is no quote and
        StaleExchangeRateError when the quote is older than ``max_age``.
        """
        if currency is Currency.BRL:
            return Decimal(1)
        return self._checked(self._quotes.get(currency), currency, now or datetime.now(BRT))

    def _checked(self, quote: PtaxQuote | None, currency: Currency, now: datetime) -> Decimal:
        if quote is None:
            raise MissingExchangeRateError(
                f"Cotação PTAX indisponível para {currency.value}", currency=currency.value
            )
        if self.max_age is not None and now - quote.quoted_at > self.max_age:
            raise StaleExchangeRateError(
                f"Cotação PTAX de {currency.value} desatualizada "
                f"({quote.quoted_at:%Y-%m-%d})",
                currency=currency.value,
            )
        return quote.rate

    def quote(self, currency: Currency) -> PtaxQuote | None:
        return self._quotes.get(currency)

    def as_mapping(self, now: datetime | None = None) -> dict[Currency, Decimal]:
        """Fresh rates only; missing or stale currencies are left out."""
        quotes = self._quotes
        now = now or datetime.now(BRT)
        rates = {}
        for currency, quote in quotes.items():
            try:
                rates[currency] = self._checked(quote, currency, now)
            except MissingExchangeRateError:
                continue
        return rates

    def refresh(self, client: PtaxClient, on: date | None = None) -> list[Currency]:
        """Refetch every foreign currency. Returns the currencies that failed.

        A failed currency keeps its previous quote, which ``get`` will still
        reject once it becomes stale. Readers on other threads see either the
        old table or the new one: the quotes dict is replaced, never mutated.
        """
        fresh = {}
        failed = []
        for currency in Currency:
            if currency is Currency.BRL:
                continue
            try:
                fresh[currency] = client.fetch(currency, on)
            except (
                requests.exceptions.RequestException,
                RuntimeError,
                MissingExchangeRateError,
                KeyError,
                ValueError,
            ):
                logger.warning("PTAX refresh failed for %s", currency.value, exc_info=True)
                failed.append(currency)
        self._quotes = {**self._quotes, **fresh}
        return failed

    @classmethod
    def from_mapping(
        cls,
        rates: Mapping[str, object],
        quoted_at: datetime,
        max_age: timedelta | None = timedelta(days=PTAX_MAX_AGE_DAYS),
    ) -> ExchangeRateTable:
        quotes = []
        for code, rate in rates.items():
            if code == Currency.BRL.value:
                continue
            try:
                currency = Currency(code)
            except ValueError:
                raise MissingExchangeRateError(
                    f"Moeda PTAX desconhecida: {code}", currency=str(code)
                ) from None
            quotes.append(PtaxQuote(currency, parse_decimal(rate, f"PTAX {code}"), quoted_at))
        return cls(quotes, max_age=max_age)

    @classmethod
    def from_config(cls) -> ExchangeRateTable:
        """Static table from config/ptax.yaml (``data`` + ``rates``)."""
        from aduana.config import load_static_ptax

        data = load_static_ptax()
        if not data:
            return cls()
        if "data" not in data:
            raise MissingExchangeRateError("ptax.yaml sem a data da cotação ('data')")
        quoted = data["data"]
        if isinstance(quoted, datetime):
            quoted_at = quoted if quoted.tzinfo else quoted.replace(tzinfo=BRT)
        elif isinstance(quoted, date):
            quoted_at = datetime(quoted.year, quoted.month, quoted.day, 13, 0, tzinfo=BRT)
        else:
            quoted_at = _parse_quoted_at(str(quoted))
        return cls.from_mapping(data.get("rates", {}), quoted_at)
