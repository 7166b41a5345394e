from __future__ import annotations


class AduanaError(Exception):
    """Base class for every recoverable error raised by the core."""


class InvalidInputError(AduanaError):
    """Simulation input is incomplete or inconsistent; correctable by the user."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class RateNotFoundError(AduanaError):
    """The rate table has no entry for the requested NCM."""

    def __init__(self, ncm: str) -> None:
        super().__init__(f"NCM {ncm} não encontrado na tabela de alíquotas")
        self.ncm = ncm


class MissingExchangeRateError(AduanaError):
    """A conversion needs an exchange rate that is not available."""

    def __init__(self, message: str, currency: str | None = None) -> None:
        super().__init__(message)
        self.currency = currency


class StaleExchangeRateError(MissingExchangeRateError):
    """The available PTAX quote is older than the accepted age."""


class PartnerNotFoundError(AduanaError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Parceiro não encontrado: {name}")
        self.name = name


class SettlementError(AduanaError):
    """A payment cannot be posted (invalid amount, wrong account, retired entry)."""


class OverpaymentError(SettlementError):
    """Payment amount exceeds the outstanding balance."""


class RenegotiationError(AduanaError):
    """Renegotiation rejected: invalid entry state or invalid installments."""


class RenegotiationMismatchError(RenegotiationError):
    """Installments do not add up to the outstanding balance."""


class ConcurrentModificationError(AduanaError):
    """The stored record changed since it was read (version mismatch)."""

    def __init__(
        self, entry_id: str, expected: int, found: int, kind: str = "Lançamento"
    ) -> None:
        super().__init__(
            f"{kind} {entry_id} foi alterado por outro processo "
            f"(versão esperada {expected}, encontrada {found})"
        )
        self.entry_id = entry_id
        self.expected = expected
        self.found = found
