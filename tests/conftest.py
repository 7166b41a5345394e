from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from aduana.models.ledger import (
    BankAccount,
    Currency,
    EntryType,
    LedgerEntry,
    Partner,
)
from aduana.models.simulation import SimulationInput
from aduana.services.partners import PartnerDirectory
from aduana.services.settlement import SettlementEngine

TODAY = date(2026, 10, 17)


# --- Simulation fixtures ---


@pytest.fixture
def tax_rates_dict() -> dict:
    return {"ii": "10", "ipi": "5", "pis": "2", "cofins": "9", "description": "Teste"}


@pytest.fixture
def sim_dict(tax_rates_dict) -> dict:
    """Single-item air shipment (no computed storage/AFRMM)."""
    return {
        "modal": "aereo",
        "freight_cost_usd": "1000",
        "insurance_cost_usd": "100",
        "exchange_rate_di": "5.00",
        "icms_rate": "18",
        "items": [
            {
                "description": "Notebook",
                "quantity": "10",
                "unit_price_usd": "100",
                "ncm": "12345678",
                "weight_kg": "50",
                "tax_rates": tax_rates_dict,
            }
        ],
    }


@pytest.fixture
def sim(sim_dict) -> SimulationInput:
    return SimulationInput.from_dict(sim_dict)


@pytest.fixture
def multi_sim_dict(tax_rates_dict) -> dict:
    """Maritime shipment with heterogeneous items and manual local expenses."""
    return {
        "modal": "maritimo",
        "freight_cost_usd": "2350.40",
        "insurance_cost_usd": "87.13",
        "exchange_rate_di": "5.4321",
        "icms_rate": "17",
        "local_expenses": [
            {"name": "THC", "value_brl": "1234.56"},
            {"name": "Despachante", "value_brl": "900"},
        ],
        "items": [
            {
                "description": "Parafuso",
                "quantity": "3000",
                "unit_price_usd": "0.37",
                "ncm": "73181500",
                "weight_kg": "120",
                "tax_rates": {"ii": "14", "ipi": "6.5", "pis": "2.1", "cofins": "9.65"},
            },
            {
                "description": "Motor elétrico",
                "quantity": "7",
                "unit_price_usd": "1450.99",
                "ncm": "85015210",
                "weight_kg": "210",
                "tax_rates": {"ii": "12.6", "ipi": "0", "pis": "2.1", "cofins": "9.65"},
            },
            {
                "description": "Cabo",
                "quantity": "13",
                "unit_price_usd": "33.33",
                "ncm": "85444900",
                "weight_kg": "40",
                "tax_rates": tax_rates_dict,
            },
        ],
    }


# --- Ledger fixtures ---


@pytest.fixture
def partners() -> PartnerDirectory:
    return PartnerDirectory(
        [
            Partner(name="Nexus Imports", exchange_rate_agio=Decimal("2.5"), payment_term=30),
            Partner(name="TechFront Solutions", exchange_rate_agio=Decimal("0"), payment_term=45),
        ]
    )


@pytest.fixture
def ptax() -> dict:
    return {Currency.USD: Decimal("5.43"), Currency.EUR: Decimal("5.82")}


@pytest.fixture
def brl_account() -> BankAccount:
    return BankAccount(
        id=1, name="Conta Corrente BRL", currency=Currency.BRL, balance=Decimal("1000")
    )


@pytest.fixture
def usd_account() -> BankAccount:
    return BankAccount(id=2, name="Conta USD", currency=Currency.USD, balance=Decimal("500"))


def make_entry(**overrides) -> LedgerEntry:
    fields = {
        "id": "fin-001",
        "type": EntryType.CREDIT,
        "partner": "Nexus Imports",
        "invoice_id": "INV-001",
        "process_id": "PROC-001",
        "amount": Decimal("3200.00"),
        "currency": Currency.USD,
        "due_date": date(2026, 11, 16),
    }
    fields.update(overrides)
    return LedgerEntry(**fields)


@pytest.fixture
def usd_entry() -> LedgerEntry:
    return make_entry()


@pytest.fixture
def brl_entry() -> LedgerEntry:
    return make_entry(
        id="fin-002", invoice_id="INV-002", amount=Decimal("1000"), currency=Currency.BRL
    )


@pytest.fixture
def engine() -> SettlementEngine:
    return SettlementEngine(today=lambda: TODAY)


@pytest.fixture
def entry_factory():
    return make_entry
