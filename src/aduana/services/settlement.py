"""Multi-currency receivables/payables: payments, status, BRL balances, renegotiation.

Commands mutate ``LedgerEntry`` objects in place and, when the engine has a
store, persist every touched record in one write. A failed validation leaves
everything untouched; a failed write restores the in-memory state.
"""

from __future__ import annotations

import calendar
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import fields
from datetime import date, datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from typing import Protocol

from aduana.config import BRT, MAX_INSTALLMENTS
from aduana.models.ledger import (
    OVERRIDE_STATUSES,
    BankAccount,
    Currency,
    EntryStatus,
    EntryType,
    ExpenseType,
    InstallmentSpec,
    LedgerEntry,
    LegalStatus,
    PartialPayment,
    Partner,
    Recurrence,
)
from aduana.models.simulation import CostResult
from aduana.services.exceptions import (
    MissingExchangeRateError,
    OverpaymentError,
    PartnerNotFoundError,
    RenegotiationError,
    RenegotiationMismatchError,
    SettlementError,
)
from aduana.utils.formatters import CENT, to_cents


class LedgerWriter(Protocol):
    def save_many(
        self, entries: Sequence[LedgerEntry], accounts: Sequence[BankAccount] = ()
    ) -> None: ...


class PartnerLookup(Protocol):
    def get(self, name: str) -> Partner | None: ...


def today_brt() -> date:
    return datetime.now(BRT).date()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


# --- Derived state ---


def derive_status(entry: LedgerEntry, today: date | None = None) -> EntryStatus:
    """Status shown for an entry.

    Explicit overrides win; otherwise the status follows the payments:
    fully paid beats overdue, and a partially paid entry stays partially
    paid even after its due date.
    """
    if entry.status_override in OVERRIDE_STATUSES:
        return entry.status_override
    today = today or today_brt()
    balance = entry.balance
    if entry.amount > 0 and balance <= 0:
        return EntryStatus.PAID
    if 0 < balance < entry.amount:
        return EntryStatus.PARTIALLY_PAID
    if balance == entry.amount and entry.due_date < today:
        return EntryStatus.OVERDUE
    return EntryStatus.OPEN


# --- Factories ---


def new_entry(
    *,
    type: EntryType,
    partner: str,
    invoice_id: str,
    amount: Decimal,
    currency: Currency,
    due_date: date,
    process_id: str = "",
    expense_type: ExpenseType = ExpenseType.OPERATIONAL,
    recurrence: Recurrence | None = None,
    description: str | None = None,
    pending_approval: bool = False,
    original_entry_id: str | None = None,
) -> LedgerEntry:
    """Create a ledger entry with a fresh id. Amount must be positive."""
    amount = Decimal(amount)
    if amount <= 0:
        raise SettlementError(f"Valor do lançamento deve ser positivo: {amount}")
    return LedgerEntry(
        id=_new_id("fin"),
        type=type,
        partner=partner,
        invoice_id=invoice_id,
        process_id=process_id,
        amount=amount,
        currency=currency,
        due_date=due_date,
        expense_type=expense_type,
        recurrence=recurrence,
        description=description,
        status_override=EntryStatus.PENDING_APPROVAL if pending_approval else None,
        original_entry_id=original_entry_id,
    )


def entry_from_simulation(
    result: CostResult,
    partner: Partner,
    *,
    invoice_id: str,
    process_id: str = "",
    due_date: date | None = None,
    today: date | None = None,
) -> LedgerEntry:
    """Turn a simulation total into a BRL receivable for the client.

    Without an explicit due date the partner payment term (days) is applied.
    """
    if due_date is None:
        due_date = (today or today_brt()) + timedelta(days=partner.payment_term or 0)
    return new_entry(
        type=EntryType.CREDIT,
        partner=partner.name,
        invoice_id=invoice_id,
        process_id=process_id,
        amount=to_cents(result.total_cost_brl),
        currency=Currency.BRL,
        due_date=due_date,
        description=f"Custo de importação simulado ({len(result.items)} itens)",
    )


def new_payment(
    amount: Decimal,
    account_id: int,
    *,
    exchange_rate: Decimal | None = None,
    on: date | None = None,
) -> PartialPayment:
    return PartialPayment(
        id=_new_id("pay"),
        amount=Decimal(amount),
        date=on or today_brt(),
        account_id=account_id,
        exchange_rate=Decimal(exchange_rate) if exchange_rate is not None else None,
    )


def add_months(d: date, months: int) -> date:
    """Same day ``months`` later, clamped to the last day of the target month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def split_installments(
    total: Decimal,
    count: int,
    start_date: date,
    invoice_id: str | None = None,
) -> list[InstallmentSpec]:
    """Split ``total`` into ``count`` monthly installments.

    Every installment is rounded down to cents and the last one absorbs the
    remainder, so the installments always add up to ``total`` exactly.
    """
    if not 1 <= count <= MAX_INSTALLMENTS:
        raise RenegotiationError(f"Número de parcelas deve estar entre 1 e {MAX_INSTALLMENTS}")
    total = Decimal(total)
    if total <= 0:
        raise RenegotiationError("Saldo a renegociar deve ser positivo")

    base = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    amounts = [base] * (count - 1) + [total - base * (count - 1)]
    return [
        InstallmentSpec(
            amount=amount,
            due_date=add_months(start_date, i),
            invoice_id=f"{invoice_id}-P{i + 1}/{count}" if invoice_id else None,
        )
        for i, amount in enumerate(amounts)
    ]


# --- Engine ---


def _snapshot(obj: object) -> dict:
    state = {f.name: getattr(obj, f.name) for f in fields(obj)}  # type: ignore[arg-type]
    if "payments" in state:
        state["payments"] = list(state["payments"])
    return state


def _restore(obj: object, state: dict) -> None:
    for name, value in state.items():
        setattr(obj, name, value)


class SettlementEngine:
    """Applies ledger commands, one at a time, against entries and accounts.

    ``store`` is optional; without it the engine works purely in memory.
    ``today`` is injectable for deterministic status derivation.
    """

    def __init__(
        self,
        store: LedgerWriter | None = None,
        today: Callable[[], date] = today_brt,
    ) -> None:
        self.store = store
        self._today = today

    def today(self) -> date:
        return self._today()

    def status(self, entry: LedgerEntry) -> EntryStatus:
        return derive_status(entry, self.today())

    def _commit(
        self,
        touched: Iterable[object],
        entries: Sequence[LedgerEntry],
        accounts: Sequence[BankAccount],
        mutate: Callable[[], None],
    ) -> None:
        """Run ``mutate`` and persist; restore ``touched`` objects on failure."""
        snapshots = [(obj, _snapshot(obj)) for obj in touched]
        try:
            mutate()
            if self.store is not None:
                self.store.save_many(entries, accounts)
        except Exception:
            for obj, state in snapshots:
                _restore(obj, state)
            raise

    def post_payment(
        self,
        entry: LedgerEntry,
        payment: PartialPayment,
        account: BankAccount,
    ) -> tuple[LedgerEntry, BankAccount]:
        """Register a (partial) payment and move the settling account balance.

        The payment amount is in the entry currency. When the account holds a
        different currency the payment must carry the rate that converts the
        entry currency into the account currency.
        """
        if entry.status_override is EntryStatus.RENEGOTIATED:
            raise SettlementError(
                f"Lançamento {entry.invoice_id} foi renegociado; baixe as parcelas"
            )
        if payment.amount <= 0:
            raise SettlementError("Valor do pagamento deve ser positivo")
        if payment.account_id != account.id:
            raise SettlementError(
                f"Pagamento indica a conta {payment.account_id}, "
                f"mas a conta informada é {account.id}"
            )
        if any(p.id == payment.id for p in entry.payments):
            raise SettlementError(f"Pagamento {payment.id} já registrado")

        balance = entry.balance
        if balance <= 0:
            raise SettlementError(f"Lançamento {entry.invoice_id} já está quitado")
        if payment.amount > balance:
            raise OverpaymentError(
                f"O valor do pagamento ({payment.amount}) não pode ser maior "
                f"que o saldo devedor ({balance})"
            )

        if account.currency != entry.currency:
            if payment.exchange_rate is None or payment.exchange_rate <= 0:
                raise MissingExchangeRateError(
                    f"Taxa de câmbio {entry.currency.value}->{account.currency.value} "
                    "é obrigatória",
                    currency=entry.currency.value,
                )
            converted = payment.amount * payment.exchange_rate
        else:
            if payment.exchange_rate is not None and payment.exchange_rate != 1:
                raise SettlementError("Taxa de câmbio informada para contas na mesma moeda")
            converted = payment.amount

        delta = converted if entry.type is EntryType.CREDIT else -converted

        def mutate() -> None:
            entry.payments.append(payment)
            account.balance += delta

        self._commit([entry, account], [entry], [account], mutate)
        return entry, account

    def get_balance_in_brl(
        self,
        entry: LedgerEntry,
        partners: PartnerLookup,
        ptax_rates: Mapping[Currency, Decimal],
        *,
        strict: bool = False,
    ) -> Decimal:
        """Outstanding balance converted to BRL at PTAX plus the partner's agio.

        An unknown partner counts as agio 0 unless ``strict`` is set, in which
        case PartnerNotFoundError is raised. A missing PTAX rate always raises.
        """
        balance = entry.balance
        if entry.currency is Currency.BRL:
            return balance

        ptax = ptax_rates.get(entry.currency)
        if ptax is None or ptax <= 0:
            raise MissingExchangeRateError(
                f"Cotação PTAX indisponível para {entry.currency.value}",
                currency=entry.currency.value,
            )

        partner = partners.get(entry.partner)
        if partner is None:
            if strict:
                raise PartnerNotFoundError(entry.partner)
            agio = Decimal(0)
        else:
            agio = partner.exchange_rate_agio

        rate = Decimal(ptax) * (1 + agio / Decimal(100))
        return balance * rate

    def renegotiate(
        self,
        entry: LedgerEntry,
        installments: Sequence[InstallmentSpec],
    ) -> tuple[LedgerEntry, list[LedgerEntry]]:
        """Retire ``entry`` and replace its balance with new installment entries.

        The installments must add up to the outstanding balance exactly.
        The original is marked Renegociado only if every installment is valid
        and (with a store) everything was persisted in one write.
        """
        if entry.status_override is EntryStatus.RENEGOTIATED:
            raise RenegotiationError(f"Lançamento {entry.invoice_id} já foi renegociado")
        balance = entry.balance
        if balance <= 0:
            raise RenegotiationError(f"Lançamento {entry.invoice_id} já está quitado")
        if not installments:
            raise RenegotiationError("Informe ao menos uma parcela")
        if len(installments) > MAX_INSTALLMENTS:
            raise RenegotiationError(f"Máximo de {MAX_INSTALLMENTS} parcelas")

        total = sum((Decimal(i.amount) for i in installments), Decimal(0))
        if total != balance:
            raise RenegotiationMismatchError(
                f"Soma das parcelas ({total}) difere do saldo devedor ({balance})"
            )

        count = len(installments)
        created = []
        for n, spec in enumerate(installments, start=1):
            try:
                created.append(
                    new_entry(
                        type=entry.type,
                        partner=entry.partner,
                        invoice_id=spec.invoice_id or f"{entry.invoice_id}-P{n}/{count}",
                        amount=spec.amount,
                        currency=entry.currency,
                        due_date=spec.due_date,
                        process_id=entry.process_id,
                        expense_type=entry.expense_type,
                        description=(
                            f"Parcela {n}/{count} da renegociação da fatura {entry.invoice_id}"
                        ),
                        original_entry_id=entry.id,
                    )
                )
            except SettlementError as e:
                raise RenegotiationError(f"Parcela {n} inválida: {e}") from None

        def mutate() -> None:
            entry.status_override = EntryStatus.RENEGOTIATED

        self._commit([entry], [entry, *created], [], mutate)
        return entry, created

    # --- Explicit status commands ---

    def send_to_legal(
        self,
        entry: LedgerEntry,
        legal_status: LegalStatus = LegalStatus.INITIAL,
        comments: str | None = None,
        court_case: str | None = None,
    ) -> LedgerEntry:
        if entry.status_override is EntryStatus.RENEGOTIATED:
            raise SettlementError("Lançamento renegociado não pode ir ao jurídico")
        if entry.balance <= 0:
            raise SettlementError("Lançamento quitado não pode ir ao jurídico")

        def mutate() -> None:
            entry.status_override = EntryStatus.LEGAL
            entry.legal_status = legal_status
            if comments is not None:
                entry.legal_comments = comments
            if court_case is not None:
                entry.court_case = court_case

        self._commit([entry], [entry], [], mutate)
        return entry

    def update_legal(
        self,
        entry: LedgerEntry,
        legal_status: LegalStatus | None = None,
        comments: str | None = None,
        court_case: str | None = None,
    ) -> LedgerEntry:
        if entry.status_override is not EntryStatus.LEGAL:
            raise SettlementError(f"Lançamento {entry.invoice_id} não está no jurídico")

        def mutate() -> None:
            if legal_status is not None:
                entry.legal_status = legal_status
            if comments is not None:
                entry.legal_comments = comments
            if court_case is not None:
                entry.court_case = court_case

        self._commit([entry], [entry], [], mutate)
        return entry

    def request_approval(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.status_override is not None:
            raise SettlementError(
                f"Lançamento {entry.invoice_id} está em {entry.status_override.value}"
            )

        def mutate() -> None:
            entry.status_override = EntryStatus.PENDING_APPROVAL

        self._commit([entry], [entry], [], mutate)
        return entry

    def approve(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.status_override is not EntryStatus.PENDING_APPROVAL:
            raise SettlementError(f"Lançamento {entry.invoice_id} não aguarda aprovação")
        return self._clear_override(entry)

    def revert_override(self, entry: LedgerEntry) -> LedgerEntry:
        """Return a legal/pending entry to its payment-derived status.

        Renegotiated entries stay retired: their balance lives in the
        installments.
        """
        if entry.status_override is None:
            return entry
        if entry.status_override is EntryStatus.RENEGOTIATED:
            raise SettlementError("Renegociação não pode ser revertida")
        return self._clear_override(entry)

    def _clear_override(self, entry: LedgerEntry) -> LedgerEntry:
        def mutate() -> None:
            entry.status_override = None

        self._commit([entry], [entry], [], mutate)
        return entry
