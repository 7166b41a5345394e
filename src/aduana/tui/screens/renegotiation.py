from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from aduana.models.ledger import InstallmentSpec, LedgerEntry
from aduana.services.exceptions import AduanaError
from aduana.services.settlement import SettlementEngine, add_months, split_installments
from aduana.utils.formatters import format_money
from aduana.utils.validators import validate_date

DEFAULT_INSTALLMENTS = 2


class RenegotiationScreen(ModalScreen[bool]):
    """Divide o saldo devedor de um lançamento em parcelas mensais."""

    DEFAULT_CSS = """
    RenegotiationScreen {
        align: center middle;
        background: $surface 80%;
    }
    #reneg-dialog {
        width: 70;
        height: auto;
        background: $surface;
        border: thick $warning;
        padding: 1 2;
    }
    #reneg-preview {
        height: auto;
        max-height: 12;
        margin-top: 1;
        color: $text-muted;
    }
    #reneg-error {
        color: $error;
        height: auto;
    }
    #reneg-dialog .button-bar {
        height: 3;
        margin-top: 1;
        align-horizontal: right;
    }
    #reneg-dialog .button-bar Button {
        margin-left: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, entry: LedgerEntry, engine: SettlementEngine) -> None:
        super().__init__()
        self.entry = entry
        self.engine = engine

    def compose(self) -> ComposeResult:
        entry = self.entry
        start = add_months(self.engine.today(), 1)
        with Vertical(id="reneg-dialog"):
            yield Static(
                f"[bold]Renegociar fatura {entry.invoice_id}[/bold] ({entry.partner})\n"
                f"Saldo devedor: {format_money(entry.balance, entry.currency.value)}",
                id="reneg-title",
            )
            yield Label("Nº de parcelas", classes="form-label")
            yield Input(value=str(DEFAULT_INSTALLMENTS), id="reneg-count")
            yield Label("Vencimento da 1ª parcela (YYYY-MM-DD)", classes="form-label")
            yield Input(value=start.isoformat(), id="reneg-start")
            yield Static("", id="reneg-preview")
            yield Static("", id="reneg-error")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-reneg-cancel")
                yield Button("▶ Renegociar", id="btn-reneg-confirm", variant="warning")

    def on_mount(self) -> None:
        self._update_preview()

    def on_input_changed(self, event: Input.Changed) -> None:
        self._update_preview()

    def _installments(self) -> list[InstallmentSpec]:
        raw_count = self.query_one("#reneg-count", Input).value.strip()
        try:
            count = int(raw_count)
        except ValueError:
            raise ValueError(f"Nº de parcelas inválido: '{raw_count}'") from None
        start = validate_date(self.query_one("#reneg-start", Input).value.strip())
        return split_installments(self.entry.balance, count, start, self.entry.invoice_id)

    def _update_preview(self) -> None:
        preview = self.query_one("#reneg-preview", Static)
        try:
            specs = self._installments()
        except (ValueError, AduanaError):
            preview.update("")
            return
        currency = self.entry.currency.value
        lines = [
            f"{s.invoice_id}  {s.due_date:%d/%m/%Y}  {format_money(s.amount, currency)}"
            for s in specs
        ]
        preview.update("\n".join(lines))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-reneg-confirm":
            self._do_renegotiate()
        else:
            self.dismiss(False)

    def _do_renegotiate(self) -> None:
        try:
            self.engine.renegotiate(self.entry, self._installments())
        except (ValueError, AduanaError) as e:
            self.query_one("#reneg-error", Static).update(f"Erro: {e}")
            return
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)
