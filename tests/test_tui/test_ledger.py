from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from textual.widgets import Button, DataTable, Input, Select

from aduana.config import BRT
from aduana.models.ledger import Currency, EntryStatus, LegalStatus
from aduana.services.ptax_client import PtaxQuote
from aduana.tui.screens.ledger import LedgerScreen
from aduana.tui.screens.legal import LegalReferralScreen
from aduana.tui.screens.payment import PaymentScreen


def _table(app) -> DataTable:
    return app.screen.query_one("#ledger-table", DataTable)


def _text(app, selector: str) -> str:
    return app.screen.query_one(selector).render().plain


@pytest.mark.asyncio
async def test_lists_entries_by_due_date(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        table = _table(app)
        assert table.row_count == 3
        assert [row.value for row in table.rows] == ["fin-002", "fin-001", "fin-003"]
        assert app.screen.query_one("#empty-state").display is False


@pytest.mark.asyncio
async def test_brl_balance_column(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        table = _table(app)
        assert table.get_row("fin-001")[6] == "R$ 17.810,40"
        assert table.get_row("fin-002")[6] == "R$ 1.500,00"
        assert table.get_row("fin-003")[2] == "Pagar"


@pytest.mark.asyncio
async def test_missing_ptax_shows_dash(make_app):
    from aduana.services.ptax_client import ExchangeRateTable

    app = make_app(exchange=ExchangeRateTable())
    async with app.run_test() as pilot:
        await pilot.pause()
        assert _table(app).get_row("fin-001")[6] == "—"
        assert "indisponível" in _text(app, "#ptax-info")


@pytest.mark.asyncio
async def test_totals_per_currency(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        text = _text(app, "#totals-info")
        assert "R$ 700,00" in text
        assert "US$ 3,200.00" in text
        assert _text(app, "#count-info") == "3"


@pytest.mark.asyncio
async def test_due_today_filter(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        app.screen.query_one("#filter-periodo", Select).value = "due_today"
        await pilot.pause()
        assert [row.value for row in _table(app).rows] == ["fin-002"]


@pytest.mark.asyncio
async def test_legal_tab(make_app, ledger):
    ledger.entries["fin-003"].status_override = EntryStatus.LEGAL
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        assert _table(app).row_count == 2

        await pilot.press("l")
        await pilot.pause()
        assert [row.value for row in _table(app).rows] == ["fin-003"]
        assert _text(app, "#section-title") == "Jurídico"


@pytest.mark.asyncio
async def test_key_s_opens_simulations(make_app):
    from aduana.tui.screens.simulations import SimulationScreen

    app = make_app()
    async with app.run_test() as pilot:
        await pilot.press("s")
        assert isinstance(app.screen, SimulationScreen)


@pytest.mark.asyncio
async def test_payment_flow(make_app, ledger):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("b")
        await pilot.pause()
        screen = app.screen
        assert isinstance(screen, PaymentScreen)
        assert screen.entry.id == "fin-002"

        screen.query_one("#pay-amount", Input).value = "500"
        screen.query_one("#pay-account", Select).value = 1
        screen.query_one("#btn-pay-confirm", Button).press()
        await pilot.pause()
        await pilot.pause()

        assert isinstance(app.screen, LedgerScreen)
        assert ledger.entries["fin-002"].balance == Decimal("1000")
        assert ledger.accounts[1].balance == Decimal("1500")
        assert ledger.writes == 1
        assert _table(app).get_row("fin-002")[7] == "Parcialmente Pago"


@pytest.mark.asyncio
async def test_payment_requires_rate_across_currencies(make_app, ledger):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("j")
        await pilot.press("b")
        await pilot.pause()
        screen = app.screen
        assert screen.entry.id == "fin-001"

        screen.query_one("#pay-account", Select).value = 1
        screen.query_one("#btn-pay-confirm", Button).press()
        await pilot.pause()

        assert isinstance(app.screen, PaymentScreen)
        assert "Erro" in _text(app, "#payment-error")
        assert ledger.writes == 0
        assert ledger.entries["fin-001"].payments == []


@pytest.mark.asyncio
async def test_payment_cancel(make_app, ledger):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("b")
        await pilot.pause()
        await pilot.press("escape")
        await pilot.pause()
        assert isinstance(app.screen, LedgerScreen)
        assert ledger.writes == 0


@pytest.mark.asyncio
async def test_send_to_legal_and_back(make_app, ledger):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("x")
        await pilot.pause()
        screen = app.screen
        assert isinstance(screen, LegalReferralScreen)

        screen.query_one("#legal-status", Select).value = LegalStatus.EXTRAJUDICIAL
        screen.query_one("#legal-case", Input).value = "0001234-56.2026"
        screen.query_one("#btn-legal-confirm", Button).press()
        await pilot.pause()
        await pilot.pause()
        entry = ledger.entries["fin-002"]
        assert entry.status_override is EntryStatus.LEGAL
        assert entry.legal_status is LegalStatus.EXTRAJUDICIAL
        assert entry.court_case == "0001234-56.2026"
        assert entry.legal_comments is None
        assert _table(app).row_count == 2

        await pilot.press("l")
        await pilot.pause()
        assert _table(app).get_row("fin-002")[7] == "Jurídico (Extrajudicial)"
        await pilot.press("x")
        await pilot.pause()
        assert ledger.entries["fin-002"].status_override is None
        assert ledger.writes == 2


@pytest.mark.asyncio
async def test_legal_referral_cancel(make_app, ledger):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("x")
        await pilot.pause()
        app.screen.query_one("#btn-legal-cancel", Button).press()
        await pilot.pause()
        assert isinstance(app.screen, LedgerScreen)
        assert ledger.entries["fin-002"].status_override is None
        assert ledger.writes == 0


@pytest.mark.asyncio
async def test_refresh_ptax(make_app, exchange):
    client = MagicMock()
    client.fetch.side_effect = lambda currency, on=None: PtaxQuote(
        currency, Decimal("5.5"), datetime.now(BRT)
    )
    app = make_app(ptax_client=client)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("p")
        await app.workers.wait_for_complete()
        await pilot.pause()
        assert "5.5000" in _text(app, "#ptax-info")
        assert exchange.get(Currency.EUR) == Decimal("5.5")
        assert client.fetch.call_count == 5


@pytest.mark.asyncio
async def test_typing_q_in_dialog_does_not_quit(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("x")
        await pilot.pause()
        app.screen.query_one("#legal-comments", Input).focus()
        await pilot.press("q", "u", "i", "t", "a", "r")
        await pilot.pause()
        assert isinstance(app.screen, LegalReferralScreen)
        assert app.screen.query_one("#legal-comments", Input).value == "quitar"
