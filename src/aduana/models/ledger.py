from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from aduana.utils.validators import parse_decimal, validate_date


class Currency(str, Enum):
    BRL = "BRL"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CHF = "CHF"
    JPY = "JPY"


class EntryType(str, Enum):
    CREDIT = "credit"  # a receber
    DEBIT = "debit"  # a pagar


class EntryStatus(str, Enum):
    OPEN = "Aberto"
    PARTIALLY_PAID = "Parcialmente Pago"
    OVERDUE = "Vencido"
    PAID = "Pago"
    LEGAL = "Jurídico"
    PENDING_APPROVAL = "Pendente de Aprovação"
    RENEGOTIATED = "Renegociado"


# Statuses that are only set/cleared by explicit commands.
OVERRIDE_STATUSES = frozenset(
    {EntryStatus.LEGAL, EntryStatus.PENDING_APPROVAL, EntryStatus.RENEGOTIATED}
)


class LegalStatus(str, Enum):
    EXTRAJUDICIAL = "Extrajudicial"
    INITIAL = "Fase Inicial"
    EXECUTION = "Fase de Execução"
    VEIL_PIERCING = "Desconsideração da Personalidade Jurídica"


class ExpenseType(str, Enum):
    OPERATIONAL = "Operacional"
    ADMINISTRATIVE = "Administrativa"


class Recurrence(str, Enum):
    ONCE = "Única"
    MONTHLY = "Mensal"
    YEARLY = "Anual"


@dataclass(frozen=True)
class Partner:
    """Counterparty of ledger entries (client, agent, supplier)."""

    name: str
    exchange_rate_agio: Decimal = Decimal(0)  # % over PTAX
    payment_term: int | None = None  # days

    @classmethod
    def from_dict(cls, d: dict) -> Partner:
        term = d.get("payment_term")
        return cls(
            name=d["name"],
            exchange_rate_agio=parse_decimal(d.get("exchange_rate_agio", 0), "Ágio"),
            payment_term=int(term) if term is not None else None,
        )


@dataclass(frozen=True)
class PartialPayment:
    id: str
    amount: Decimal  # in the entry currency
    date: date
    account_id: int
    exchange_rate: Decimal | None = None  # entry currency -> account currency

    @classmethod
    def from_dict(cls, d: dict) -> PartialPayment:
        rate = d.get("exchange_rate")
        return cls(
            id=d["id"],
            amount=parse_decimal(d["amount"], "Pagamento"),
            date=validate_date(d["date"]),
            account_id=int(d["account_id"]),
            exchange_rate=parse_decimal(rate, "Taxa de câmbio") if rate is not None else None,
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "account_id": self.account_id,
        }
        if self.exchange_rate is not None:
            d["exchange_rate"] = str(self.exchange_rate)
        return d


@dataclass
class BankAccount:
    id: int
    name: str
    currency: Currency
    balance: Decimal = Decimal(0)
    bank_name: str = ""
    agency: str = ""
    account_number: str = ""
    version: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> BankAccount:
        return cls(
            id=int(d["id"]),
            name=d["name"],
            currency=Currency(d["currency"]),
            balance=parse_decimal(d.get("balance", 0), "Saldo"),
            bank_name=d.get("bank_name", ""),
            agency=d.get("agency", ""),
            account_number=d.get("account_number", ""),
            version=int(d.get("version", 0)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "currency": self.currency.value,
            "balance": str(self.balance),
            "bank_name": self.bank_name,
            "agency": self.agency,
            "account_number": self.account_number,
            "version": self.version,
        }


@dataclass(frozen=True)
class InstallmentSpec:
    """One installment requested in a renegotiation."""

    amount: Decimal
    due_date: date
    invoice_id: str | None = None


@dataclass
class LedgerEntry:
    """A receivable (credit) or payable (debit).

    ``amount`` is fixed at creation; settlement appends to ``payments`` and
    renegotiation retires the entry through ``status_override``. The
    displayed status is derived by ``services.settlement.derive_status``.
    """

    id: str
    type: EntryType
    partner: str
    invoice_id: str
    process_id: str
    amount: Decimal
    currency: Currency
    due_date: date
    payments: list[PartialPayment] = field(default_factory=list)
    status_override: EntryStatus | None = None
    legal_status: LegalStatus | None = None
    legal_comments: str | None = None
    court_case: str | None = None
    expense_type: ExpenseType = ExpenseType.OPERATIONAL
    recurrence: Recurrence | None = None
    description: str | None = None
    original_entry_id: str | None = None
    version: int = 0

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal(0))

    @property
    def balance(self) -> Decimal:
        return self.amount - self.total_paid

    @classmethod
    def from_dict(cls, d: dict) -> LedgerEntry:
        override = d.get("status_override")
        legal = d.get("legal_status")
        recurrence = d.get("recurrence")
        return cls(
            id=d["id"],
            type=EntryType(d["type"]),
            partner=d["partner"],
            invoice_id=d["invoice_id"],
            process_id=d.get("process_id", ""),
            amount=parse_decimal(d["amount"], "Valor"),
            currency=Currency(d["currency"]),
            due_date=validate_date(d["due_date"]),
            payments=[PartialPayment.from_dict(p) for p in d.get("payments", [])],
            status_override=EntryStatus(override) if override else None,
            legal_status=LegalStatus(legal) if legal else None,
            legal_comments=d.get("legal_comments"),
            court_case=d.get("court_case"),
            expense_type=ExpenseType(d.get("expense_type", ExpenseType.OPERATIONAL.value)),
            recurrence=Recurrence(recurrence) if recurrence else None,
            description=d.get("description"),
            original_entry_id=d.get("original_entry_id"),
            version=int(d.get("version", 0)),
        )

    def to_dict(self) -> dict:
        optional = {
            "status_override": self.status_override.value if self.status_override else None,
            "legal_status": self.legal_status.value if self.legal_status else None,
            "legal_comments": self.legal_comments,
            "court_case": self.court_case,
            "recurrence": self.recurrence.value if self.recurrence else None,
            "description": self.description,
            "original_entry_id": self.original_entry_id,
        }
        return {
            "id": self.id,
            "type": self.type.value,
            "partner": self.partner,
            "invoice_id": self.invoice_id,
            "process_id": self.process_id,
            "amount": str(self.amount),
            "currency": self.currency.value,
            "due_date": self.due_date.isoformat(),
            "payments": [p.to_dict() for p in self.payments],
            "expense_type": self.expense_type.value,
            "version": self.version,
            **{k: v for k, v in optional.items() if v is not None},
        }
