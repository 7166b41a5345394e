from __future__ import annotations

import pytest
from textual.widgets import DataTable

from aduana.tui.screens.ledger import LedgerScreen
from aduana.tui.screens.simulations import SimulationScreen


async def _open(app, pilot) -> SimulationScreen:
    await pilot.pause()
    await pilot.press("s")
    await pilot.pause()
    assert isinstance(app.screen, SimulationScreen)
    return app.screen


@pytest.mark.asyncio
async def test_lists_saved_simulations(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        table = screen.query_one("#sim-table", DataTable)
        assert table.row_count == 2
        assert table.get_row("sim-aaa")[:2] == ["Notebooks", "Nexus Imports"]
        assert table.get_row("sim-bbb")[2] == "2026-10-02 11:30"
        assert table.get_row("sim-bbb")[3] == "3"


@pytest.mark.asyncio
async def test_selecting_shows_allocation(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        await pilot.press("enter")
        await pilot.pause()

        summary = screen.query_one("#result-summary").render().plain
        assert "R$ 16.339,02" in summary
        result = screen.query_one("#result-table", DataTable)
        assert result.row_count == 1
        assert result.get_row_at(0)[-1] == "R$ 1.633,90"


@pytest.mark.asyncio
async def test_multi_item_simulation(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        screen.show_simulation("sim-bbb")
        await pilot.pause()
        result = screen.query_one("#result-table", DataTable)
        assert result.row_count == 3
        assert result.get_row_at(1)[0] == "Motor elétrico"


@pytest.mark.asyncio
async def test_invalid_saved_simulation(make_app, simulations, sim_dict):
    del sim_dict["items"][0]["tax_rates"]
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        screen.show_simulation("sim-aaa")
        await pilot.pause()
        assert "Erro" in screen.query_one("#result-summary").render().plain
        assert screen.query_one("#result-table", DataTable).row_count == 0


@pytest.mark.asyncio
async def test_unknown_simulation(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        screen.show_simulation("sim-zzz")
        await pilot.pause()
        assert "não encontrada" in screen.query_one("#result-summary").render().plain


@pytest.mark.asyncio
async def test_escape_goes_back(make_app):
    app = make_app()
    async with app.run_test() as pilot:
        await _open(app, pilot)
        await pilot.press("escape")
        await pilot.pause()
        assert isinstance(app.screen, LedgerScreen)
