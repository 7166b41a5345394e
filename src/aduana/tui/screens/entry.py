from __future__ import annotations

import logging
from datetime import timedelta

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, Static

from aduana.models.ledger import Currency, EntryType, ExpenseType, LedgerEntry, Partner, Recurrence
from aduana.models.simulation import CostResult
from aduana.services.exceptions import AduanaError
from aduana.services.settlement import entry_from_simulation, new_entry, today_brt
from aduana.utils.formatters import format_brl
from aduana.utils.validators import validate_date, validate_positive

logger = logging.getLogger(__name__)

DIALOG_CSS = """
{screen} {{
    align: center middle;
    background: $surface 80%;
}}
#{dialog} {{
    width: 76;
    height: auto;
    max-height: 95%;
    background: $surface;
    border: thick $primary;
    padding: 1 2;
}}
#{dialog} VerticalScroll {{
    height: auto;
    max-height: 24;
}}
#{dialog} .form-error {{
    color: $error;
    height: auto;
}}
#{dialog} .button-bar {{
    height: 3;
    margin-top: 1;
    align-horizontal: right;
}}
#{dialog} .button-bar Button {{
    margin-left: 1;
}}
"""


def _save_entry(app, entry: LedgerEntry) -> None:
    app.ledger.save_many([entry])
    logger.info("Entry %s created (%s %s)", entry.id, entry.currency.value, entry.amount)


class NewEntryScreen(ModalScreen[bool]):
    """Cadastro manual de uma conta a receber ou a pagar."""

    DEFAULT_CSS = DIALOG_CSS.format(screen="NewEntryScreen", dialog="entry-dialog")

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="entry-dialog"):
            yield Static("[bold]Novo lançamento[/bold]", id="entry-title")
            with VerticalScroll():
                yield Label("Tipo", classes="form-label")
                yield Select(
                    [("A receber", EntryType.CREDIT), ("A pagar", EntryType.DEBIT)],
                    value=EntryType.DEBIT,
                    allow_blank=False,
                    id="entry-type",
                )
                yield Label("Parceiro", classes="form-label")
                yield Input(placeholder="cliente ou fornecedor", id="entry-partner")
                yield Label("Fatura", classes="form-label")
                yield Input(placeholder="NF-1234", id="entry-invoice")
                yield Label("Processo", classes="form-label")
                yield Input(placeholder="opcional", id="entry-process")
                yield Label("Valor", classes="form-label")
                yield Input(placeholder="0.00", id="entry-amount")
                yield Label("Moeda", classes="form-label")
                yield Select(
                    [(c.value, c) for c in Currency],
                    value=Currency.BRL,
                    allow_blank=False,
                    id="entry-currency",
                )
                yield Label("Vencimento (YYYY-MM-DD)", classes="form-label")
                yield Input(value=today_brt().isoformat(), id="entry-due")
                yield Label("Tipo de despesa", classes="form-label")
                yield Select(
                    [(e.value, e) for e in ExpenseType],
                    value=ExpenseType.OPERATIONAL,
                    allow_blank=False,
                    id="entry-expense",
                )
                yield Label("Recorrência", classes="form-label")
                yield Select(
                    [(r.value, r) for r in Recurrence],
                    value=Recurrence.ONCE,
                    allow_blank=False,
                    id="entry-recurrence",
                )
                yield Label("Situação inicial", classes="form-label")
                yield Select(
                    [("Aberto", "open"), ("Aguardando aprovação", "pending")],
                    value="open",
                    allow_blank=False,
                    id="entry-pending",
                )
                yield Label("Descrição", classes="form-label")
                yield Input(id="entry-description")
            yield Static("", id="entry-error", classes="form-error")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-entry-cancel")
                yield Button("▶ Salvar", id="btn-entry-confirm", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-entry-confirm":
            self._do_save()
        else:
            self.dismiss(False)

    def _show_error(self, msg: str) -> None:
        self.query_one("#entry-error", Static).update(f"Erro: {msg}")

    def _value(self, selector: str) -> str:
        return self.query_one(selector, Input).value.strip()

    def _do_save(self) -> None:
        partner = self._value("#entry-partner")
        invoice_id = self._value("#entry-invoice")
        if not partner:
            self._show_error("informe o parceiro")
            return
        if not invoice_id:
            self._show_error("informe a fatura")
            return
        try:
            amount = validate_positive(self._value("#entry-amount").replace(",", "."), "Valor")
            due_date = validate_date(self._value("#entry-due"))
        except ValueError as e:
            self._show_error(str(e))
            return

        try:
            entry = new_entry(
                type=EntryType(self.query_one("#entry-type", Select).value),
                partner=partner,
                invoice_id=invoice_id,
                amount=amount,
                currency=Currency(self.query_one("#entry-currency", Select).value),
                due_date=due_date,
                process_id=self._value("#entry-process"),
                expense_type=ExpenseType(self.query_one("#entry-expense", Select).value),
                recurrence=Recurrence(self.query_one("#entry-recurrence", Select).value),
                description=self._value("#entry-description") or None,
                pending_approval=self.query_one("#entry-pending", Select).value == "pending",
            )
            _save_entry(self.app, entry)
        except AduanaError as e:
            self._show_error(str(e))
            return
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class LaunchSimulationScreen(ModalScreen[bool]):
    """Lança o custo total de uma simulação como conta a receber do cliente."""

    DEFAULT_CSS = DIALOG_CSS.format(screen="LaunchSimulationScreen", dialog="launch-dialog")

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, sim_name: str, result: CostResult, partner: Partner) -> None:
        super().__init__()
        self.sim_name = sim_name
        self.result = result
        self.partner = partner

    def compose(self) -> ComposeResult:
        due = today_brt() + timedelta(days=self.partner.payment_term or 0)
        with Vertical(id="launch-dialog"):
            yield Static(
                f"[bold]Lançar simulação[/bold] {self.sim_name} para {self.partner.name}\n"
                f"Custo total: {format_brl(self.result.total_cost_brl)}",
                id="launch-title",
            )
            yield Label("Fatura", classes="form-label")
            yield Input(placeholder="DI-1234", id="launch-invoice")
            yield Label("Processo", classes="form-label")
            yield Input(placeholder="opcional", id="launch-process")
            yield Label("Vencimento (YYYY-MM-DD)", classes="form-label")
            yield Input(value=due.isoformat(), id="launch-due")
            yield Static("", id="launch-error", classes="form-error")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-launch-cancel")
                yield Button("▶ Lançar", id="btn-launch-confirm", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-launch-confirm":
            self._do_launch()
        else:
            self.dismiss(False)

    def _do_launch(self) -> None:
        error = self.query_one("#launch-error", Static)
        invoice_id = self.query_one("#launch-invoice", Input).value.strip()
        if not invoice_id:
            error.update("Erro: informe a fatura")
            return
        try:
            due_date = validate_date(self.query_one("#launch-due", Input).value.strip())
            entry = entry_from_simulation(
                self.result,
                self.partner,
                invoice_id=invoice_id,
                process_id=self.query_one("#launch-process", Input).value.strip(),
                due_date=due_date,
            )
            _save_entry(self.app, entry)
        except (ValueError, AduanaError) as e:
            error.update(f"Erro: {e}")
            return
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)
