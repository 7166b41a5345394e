from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Static

from aduana.models.ledger import Partner
from aduana.models.simulation import SimulationInput
from aduana.services.allocator import allocate
from aduana.services.exceptions import InvalidInputError
from aduana.utils.formatters import format_brl


class SimulationScreen(Screen[int]):
    """Saved DI simulations; selecting one shows the allocated cost per item."""

    BINDINGS = [
        Binding("f", "launch", "Lançar no financeiro"),
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.launched = 0

    def compose(self) -> ComposeResult:
        with Horizontal(id="top-bar"):
            yield Static("Simulações de DI", id="app-title")
        yield DataTable(id="sim-table", cursor_type="row")
        yield Static("", id="result-summary")
        yield DataTable(id="result-table", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        sims = self.query_one("#sim-table", DataTable)
        sims.add_columns("Nome", "Cliente", "Criada em", "Itens")
        result = self.query_one("#result-table", DataTable)
        result.add_columns(
            "Item", "NCM", "Qtd", "Valor aduaneiro", "Impostos", "Despesas", "Custo unit."
        )
        for record in self.app.simulations.list():  # type: ignore[attr-defined]
            sims.add_row(
                record.get("name", ""),
                record.get("customer", ""),
                str(record.get("created_at", ""))[:16].replace("T", " "),
                str(len(record.get("data", {}).get("items", []))),
                key=record["id"],
            )
        sims.focus()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.data_table.id != "sim-table":
            return
        self.show_simulation(str(event.row_key.value))

    def show_simulation(self, sim_id: str) -> None:
        summary = self.query_one("#result-summary", Static)
        table = self.query_one("#result-table", DataTable)
        table.clear()

        record = self.app.simulations.get(sim_id)  # type: ignore[attr-defined]
        if record is None:
            summary.update("Simulação não encontrada")
            return
        try:
            result = allocate(SimulationInput.from_dict(record["data"]))
        except InvalidInputError as e:
            summary.update(f"[red]Erro:[/red] {e}")
            return

        summary.update(
            f"Valor aduaneiro {format_brl(result.customs_value_brl)}  ·  "
            f"Impostos {format_brl(result.total_taxes_brl)}  ·  "
            f"Custo total [bold]{format_brl(result.total_cost_brl)}[/bold]"
        )
        for line in result.items:
            table.add_row(
                line.item.description,
                line.item.ncm,
                str(line.item.quantity),
                format_brl(line.customs_value),
                format_brl(line.taxes),
                format_brl(line.local_expenses),
                format_brl(line.final_unit_cost),
            )

    def selected_record(self) -> dict | None:
        table = self.query_one("#sim-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self.app.simulations.get(row_key.value)  # type: ignore[attr-defined]

    def action_launch(self) -> None:
        """Post the selected simulation total as a receivable for its customer."""
        from aduana.tui.screens.entry import LaunchSimulationScreen

        record = self.selected_record()
        if record is None:
            return
        try:
            result = allocate(SimulationInput.from_dict(record["data"]))
        except InvalidInputError as e:
            self.notify(f"Erro: {e}", severity="error", timeout=5)
            return
        customer = record.get("customer") or record.get("name", "")
        partners = self.app.partners  # type: ignore[attr-defined]
        partner = partners.get(customer) or Partner(name=customer)
        self.app.push_screen(
            LaunchSimulationScreen(record.get("name", ""), result, partner), self._after_launch
        )

    def _after_launch(self, launched: bool | None) -> None:
        if launched:
            self.launched += 1
            self.notify("Simulação lançada no financeiro", timeout=3)

    def action_go_back(self) -> None:
        self.dismiss(self.launched)
