from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

_SYMBOLS = {
    "BRL": "R$",
    "USD": "US$",
    "EUR": "€",
    "GBP": "£",
    "CHF": "CHF",
    "JPY": "¥",
}


def to_cents(value: Decimal | str) -> Decimal:
    """Round half-up to two decimal places."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_brl(value: Decimal | str) -> str:
    """Format a numeric value as R$ X.XXX,XX."""
    d = to_cents(value)
    formatted = f"{d:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"


def format_usd(value: Decimal | str) -> str:
    """Format a numeric value as US$ X,XXX.XX."""
    d = to_cents(value)
    return f"US$ {d:,.2f}"


def format_money(value: Decimal | str, currency: str) -> str:
    """Format an amount in any supported currency (BRL keeps the pt-BR layout)."""
    if currency == "BRL":
        return format_brl(value)
    if currency == "USD":
        return format_usd(value)
    symbol = _SYMBOLS.get(currency, currency)
    return f"{symbol} {to_cents(value):,.2f}"
