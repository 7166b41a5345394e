"""Display-side helpers for the ledger: filters, sorting and summaries."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from aduana.models.ledger import Currency, EntryStatus, EntryType, LedgerEntry, PartialPayment
from aduana.services.settlement import derive_status, today_brt

FILTERS = ("all", "due_today", "due_this_month")


def filter_entries(
    entries: Iterable[LedgerEntry],
    active_filter: str = "all",
    today: date | None = None,
) -> list[LedgerEntry]:
    """Entries for the main list. Legal entries live in their own tab.

    Date filters only show what is still to be settled (no paid or
    renegotiated entries).
    """
    if active_filter not in FILTERS:
        raise ValueError(f"Filtro desconhecido: {active_filter}")
    visible = [e for e in entries if e.status_override is not EntryStatus.LEGAL]
    if active_filter == "all":
        return visible

    today = today or today_brt()
    result = []
    for entry in visible:
        if derive_status(entry, today) in (EntryStatus.PAID, EntryStatus.RENEGOTIATED):
            continue
        if active_filter == "due_today" and entry.due_date == today:
            result.append(entry)
        elif active_filter == "due_this_month" and (
            entry.due_date.year == today.year and entry.due_date.month == today.month
        ):
            result.append(entry)
    return result


def legal_entries(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    return [e for e in entries if e.status_override is EntryStatus.LEGAL]


def sort_entries(entries: Iterable[LedgerEntry], reverse: bool = False) -> list[LedgerEntry]:
    """By due date, then invoice id for a stable order."""
    return sorted(entries, key=lambda e: (e.due_date, e.invoice_id), reverse=reverse)


def totals_by_currency(entries: Iterable[LedgerEntry]) -> dict[Currency, Decimal]:
    """Net open balance per currency: receivables positive, payables negative."""
    totals: dict[Currency, Decimal] = {}
    for entry in entries:
        if entry.status_override is EntryStatus.RENEGOTIATED:
            continue
        value = entry.balance if entry.type is EntryType.CREDIT else -entry.balance
        totals[entry.currency] = totals.get(entry.currency, Decimal(0)) + value
    return totals


def account_statement(
    entries: Iterable[LedgerEntry], account_id: int
) -> list[tuple[LedgerEntry, PartialPayment]]:
    """Payments posted to one bank account, oldest first."""
    rows = [(e, p) for e in entries for p in e.payments if p.account_id == account_id]
    rows.sort(key=lambda row: (row[1].date, row[1].id))
    return rows


def status_label(entry: LedgerEntry, today: date | None = None) -> str:
    """Display text for the entry status, with the legal phase when there is one."""
    status = derive_status(entry, today)
    if status is EntryStatus.LEGAL and entry.legal_status is not None:
        return f"{status.value} ({entry.legal_status.value})"
    return status.value
