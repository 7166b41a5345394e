from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from aduana.config import BRT
from aduana.models.ledger import BankAccount, Currency, EntryType, LedgerEntry
from aduana.services.ptax_client import ExchangeRateTable
from aduana.services.settlement import today_brt
from aduana.tui.app import AduanaApp


class FakeLedger:
    """In-memory ledger store with the JsonLedgerStore surface the TUI uses."""

    def __init__(self, entries=(), accounts=()):
        self.entries = {e.id: e for e in entries}
        self.accounts = {a.id: a for a in accounts}
        self.writes = 0

    def list(self):
        return list(self.entries.values())

    def get(self, entry_id):
        return self.entries.get(entry_id)

    def list_accounts(self):
        return list(self.accounts.values())

    def save_many(self, entries, accounts=()):
        self.writes += 1
        for entry in entries:
            entry.version += 1
            self.entries[entry.id] = entry
        for account in accounts:
            account.version += 1
            self.accounts[account.id] = account


class FakeSimulations:
    def __init__(self, records=()):
        self.records = list(records)

    def list(self):
        return list(self.records)

    def get(self, sim_id):
        return next((r for r in self.records if r["id"] == sim_id), None)


def _entry(**overrides) -> LedgerEntry:
    fields = {
        "id": "fin-001",
        "type": EntryType.CREDIT,
        "partner": "Nexus Imports",
        "invoice_id": "INV-001",
        "process_id": "PROC-001",
        "amount": Decimal("3200.00"),
        "currency": Currency.USD,
        "due_date": today_brt() + timedelta(days=40),
    }
    fields.update(overrides)
    return LedgerEntry(**fields)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(
        entries=[
            _entry(),
            _entry(
                id="fin-002",
                invoice_id="INV-002",
                partner="TechFront Solutions",
                amount=Decimal("1500"),
                currency=Currency.BRL,
                due_date=today_brt(),
            ),
            _entry(
                id="fin-003",
                invoice_id="INV-003",
                type=EntryType.DEBIT,
                partner="Despachante Silva",
                amount=Decimal("800"),
                currency=Currency.BRL,
                due_date=today_brt() + timedelta(days=90),
            ),
        ],
        accounts=[
            BankAccount(id=1, name="Conta BRL", currency=Currency.BRL, balance=Decimal("1000")),
            BankAccount(id=2, name="Conta USD", currency=Currency.USD, balance=Decimal("0")),
        ],
    )


@pytest.fixture
def simulations(sim_dict, multi_sim_dict) -> FakeSimulations:
    return FakeSimulations(
        [
            {
                "id": "sim-aaa",
                "name": "Notebooks",
                "customer": "Nexus Imports",
                "created_at": "2026-10-01T10:00:00-03:00",
                "data": sim_dict,
            },
            {
                "id": "sim-bbb",
                "name": "Peças",
                "customer": "TechFront Solutions",
                "created_at": "2026-10-02T11:30:00-03:00",
                "data": multi_sim_dict,
            },
        ]
    )


@pytest.fixture
def exchange() -> ExchangeRateTable:
    return ExchangeRateTable.from_mapping(
        {"USD": "5.43", "EUR": "5.82"}, datetime.now(BRT) - timedelta(hours=1)
    )


@pytest.fixture
def make_app(ledger, simulations, partners, exchange):
    def _make(**overrides) -> AduanaApp:
        kwargs = {
            "ledger": ledger,
            "simulations": simulations,
            "partners": partners,
            "exchange": exchange,
        }
        kwargs.update(overrides)
        return AduanaApp(**kwargs)

    return _make

