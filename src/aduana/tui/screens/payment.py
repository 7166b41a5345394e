from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, Static

from aduana.models.ledger import BankAccount, LedgerEntry
from aduana.services.exceptions import AduanaError
from aduana.services.settlement import SettlementEngine, new_payment
from aduana.utils.formatters import format_money
from aduana.utils.validators import parse_decimal


class PaymentScreen(ModalScreen[bool]):
    """Baixa (total ou parcial) de um lançamento em uma conta bancária."""

    DEFAULT_CSS = """
    PaymentScreen {
        align: center middle;
        background: $surface 80%;
    }
    #payment-dialog {
        width: 70;
        height: auto;
        background: $surface;
        border: thick $primary;
        padding: 1 2;
    }
    #payment-error {
        color: $error;
        height: auto;
    }
    #payment-dialog .button-bar {
        height: 3;
        margin-top: 1;
        align-horizontal: right;
    }
    #payment-dialog .button-bar Button {
        margin-left: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(
        self,
        entry: LedgerEntry,
        accounts: list[BankAccount],
        engine: SettlementEngine,
    ) -> None:
        super().__init__()
        self.entry = entry
        self.accounts = {a.id: a for a in accounts}
        self.engine = engine

    def compose(self) -> ComposeResult:
        entry = self.entry
        with Vertical(id="payment-dialog"):
            yield Static(
                f"[bold]Baixa da fatura {entry.invoice_id}[/bold] ({entry.partner})\n"
                f"Saldo devedor: {format_money(entry.balance, entry.currency.value)}",
                id="payment-title",
            )
            yield Label(f"Valor ({entry.currency.value})", classes="form-label")
            yield Input(value=str(entry.balance), id="pay-amount")
            yield Label("Conta", classes="form-label")
            yield Select(
                [(f"{a.name} ({a.currency.value})", a.id) for a in self.accounts.values()],
                id="pay-account",
                prompt="Selecione a conta",
            )
            yield Label("Taxa de câmbio (moeda da fatura -> moeda da conta)", classes="form-label")
            yield Input(placeholder="somente para contas em outra moeda", id="pay-rate")
            yield Static("", id="payment-error")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-pay-cancel")
                yield Button("▶ Confirmar baixa", id="btn-pay-confirm", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-pay-confirm":
            self._do_pay()
        else:
            self.dismiss(False)

    def _show_error(self, msg: str) -> None:
        self.query_one("#payment-error", Static).update(f"Erro: {msg}")

    def _do_pay(self) -> None:
        account_id = self.query_one("#pay-account", Select).value
        if account_id not in self.accounts:
            self._show_error("selecione a conta")
            return
        raw_rate = self.query_one("#pay-rate", Input).value.strip()
        try:
            amount = parse_decimal(self.query_one("#pay-amount", Input).value.strip(), "Valor")
            rate = parse_decimal(raw_rate.replace(",", "."), "Taxa") if raw_rate else None
        except ValueError as e:
            self._show_error(str(e))
            return

        payment = new_payment(amount, account_id, exchange_rate=rate)
        try:
            self.engine.post_payment(self.entry, payment, self.accounts[account_id])
        except AduanaError as e:
            self._show_error(str(e))
            return
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)
