from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from aduana.models.ledger import Currency, EntryStatus, EntryType, LegalStatus, PartialPayment
from aduana.services.presenter import (
    account_statement,
    filter_entries,
    legal_entries,
    sort_entries,
    status_label,
    totals_by_currency,
)

TODAY = date(2026, 10, 17)


@pytest.fixture
def entries(entry_factory):
    return [
        entry_factory(id="a", invoice_id="A", due_date=TODAY),
        entry_factory(id="b", invoice_id="B", due_date=date(2026, 10, 30)),
        entry_factory(id="c", invoice_id="C", due_date=date(2026, 11, 5)),
        entry_factory(
            id="d",
            invoice_id="D",
            due_date=TODAY,
            amount=Decimal("10"),
            payments=[PartialPayment("p", Decimal("10"), TODAY, 1)],
        ),
        entry_factory(id="e", invoice_id="E", due_date=TODAY, status_override=EntryStatus.LEGAL),
        entry_factory(
            id="f", invoice_id="F", due_date=TODAY, status_override=EntryStatus.RENEGOTIATED
        ),
    ]


def _ids(entries):
    return [e.id for e in entries]


class TestFilters:
    def test_all_hides_legal(self, entries):
        assert _ids(filter_entries(entries, "all", TODAY)) == ["a", "b", "c", "d", "f"]

    def test_due_today_hides_settled(self, entries):
        assert _ids(filter_entries(entries, "due_today", TODAY)) == ["a"]

    def test_due_this_month(self, entries):
        assert _ids(filter_entries(entries, "due_this_month", TODAY)) == ["a", "b"]

    def test_unknown_filter(self, entries):
        with pytest.raises(ValueError):
            filter_entries(entries, "overdue", TODAY)

    def test_legal_tab(self, entries):
        assert _ids(legal_entries(entries)) == ["e"]


def test_sort_by_due_date_then_invoice(entry_factory):
    rows = [
        entry_factory(id="2", invoice_id="Z", due_date=date(2026, 12, 1)),
        entry_factory(id="1", invoice_id="B", due_date=date(2026, 11, 1)),
        entry_factory(id="3", invoice_id="A", due_date=date(2026, 11, 1)),
    ]
    assert _ids(sort_entries(rows)) == ["3", "1", "2"]
    assert _ids(sort_entries(rows, reverse=True)) == ["2", "1", "3"]


def test_totals_by_currency(entry_factory):
    rows = [
        entry_factory(id="1", amount=Decimal("100"), currency=Currency.USD),
        entry_factory(id="2", amount=Decimal("30"), currency=Currency.USD, type=EntryType.DEBIT),
        entry_factory(id="3", amount=Decimal("500"), currency=Currency.BRL),
        entry_factory(
            id="4",
            amount=Decimal("999"),
            currency=Currency.BRL,
            status_override=EntryStatus.RENEGOTIATED,
        ),
    ]
    assert totals_by_currency(rows) == {Currency.USD: Decimal("70"), Currency.BRL: Decimal("500")}


def test_account_statement(entry_factory):
    rows = [
        entry_factory(
            id="1",
            payments=[
                PartialPayment("p2", Decimal("5"), date(2026, 10, 10), 1),
                PartialPayment("p9", Decimal("5"), date(2026, 10, 1), 2),
            ],
        ),
        entry_factory(id="2", payments=[PartialPayment("p1", Decimal("7"), date(2026, 10, 3), 1)]),
    ]
    statement = account_statement(rows, 1)
    assert [(e.id, p.id) for e, p in statement] == [("2", "p1"), ("1", "p2")]


def test_status_label(entry_factory):
    assert status_label(entry_factory(due_date=date(2026, 10, 1)), TODAY) == "Vencido"
    legal = entry_factory(status_override=EntryStatus.LEGAL, legal_status=LegalStatus.EXECUTION)
    assert status_label(legal, TODAY) == "Jurídico (Fase de Execução)"
    assert status_label(entry_factory(status_override=EntryStatus.LEGAL), TODAY) == "Jurídico"
