from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation


def parse_decimal(value: object, label: str = "Valor") -> Decimal:
    """Parse a number-like value into a finite Decimal.

    Floats go through ``str()`` so that 0.1 becomes Decimal("0.1").
    Raises ValueError for anything non-numeric.
    """
    if isinstance(value, bool):
        raise ValueError(f"{label}: valor numerico invalido: '{value}'")
    if isinstance(value, float):
        value = str(value)
    try:
        d = Decimal(value)  # type: ignore[arg-type]
        if not d.is_finite():
            raise InvalidOperation
    except (InvalidOperation, TypeError):
        raise ValueError(f"{label}: valor numerico invalido: '{value}'") from None
    return d


def validate_positive(value: object, label: str = "Valor") -> Decimal:
    """Parse and require a strictly positive amount."""
    d = parse_decimal(value, label)
    if d <= 0:
        raise ValueError(f"{label}: deve ser positivo: '{value}'")
    return d


def validate_non_negative(value: object, label: str = "Valor") -> Decimal:
    d = parse_decimal(value, label)
    if d < 0:
        raise ValueError(f"{label}: nao pode ser negativo: '{value}'")
    return d


def validate_percent(value: object, label: str = "Percentual") -> Decimal:
    """Validate a percentage value (0-100)."""
    d = parse_decimal(value, label)
    if d < 0 or d > 100:
        raise ValueError(f"{label}: deve estar entre 0.00 e 100.00")
    return d


def normalize_ncm(value: str) -> str:
    """Strip the usual NCM punctuation (8471.30.12 -> 84713012)."""
    return re.sub(r"[.\s-]", "", str(value))


def validate_ncm(value: str) -> str:
    """Validate an NCM code: exactly 8 numeric digits after normalization."""
    ncm = normalize_ncm(value)
    if not re.fullmatch(r"\d{8}", ncm):
        raise ValueError("NCM deve ter 8 digitos")
    return ncm


def validate_date(value: str | date) -> date:
    """Validate an ISO date (YYYY-MM-DD) and return it as a date."""
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValueError(f"Data invalida: '{value}'. Use YYYY-MM-DD.") from None
