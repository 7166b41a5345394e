from __future__ import annotations

import logging
from decimal import Decimal

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Input, Label, Select, Static

from aduana.models.ledger import BankAccount, Currency, EntryType, LedgerEntry
from aduana.services.exceptions import AduanaError
from aduana.services.presenter import account_statement
from aduana.utils.formatters import format_money
from aduana.utils.validators import parse_decimal

logger = logging.getLogger(__name__)


class BankAccountScreen(ModalScreen[bool]):
    """Cadastro de conta bancária (ou caixa) com saldo inicial."""

    DEFAULT_CSS = """
    BankAccountScreen {
        align: center middle;
        background: $surface 80%;
    }
    #account-dialog {
        width: 70;
        height: auto;
        background: $surface;
        border: thick $primary;
        padding: 1 2;
    }
    #account-dialog .form-row {
        height: auto;
    }
    #account-error {
        color: $error;
        height: auto;
    }
    #account-dialog .button-bar {
        height: 3;
        margin-top: 1;
        align-horizontal: right;
    }
    #account-dialog .button-bar Button {
        margin-left: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, accounts: list[BankAccount]) -> None:
        super().__init__()
        self.next_id = max((a.id for a in accounts), default=0) + 1

    def compose(self) -> ComposeResult:
        with Vertical(id="account-dialog"):
            yield Static(f"[bold]Nova conta bancária[/bold] (nº {self.next_id})")
            yield Label("Nome da conta", classes="form-label")
            yield Input(placeholder="Conta Corrente BRL", id="account-name")
            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Banco", classes="form-label")
                    yield Input(id="account-bank")
                with Vertical():
                    yield Label("Moeda", classes="form-label")
                    yield Select(
                        [(c.value, c) for c in Currency],
                        value=Currency.BRL,
                        allow_blank=False,
                        id="account-currency",
                    )
            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Agência", classes="form-label")
                    yield Input(id="account-agency")
                with Vertical():
                    yield Label("Número da conta", classes="form-label")
                    yield Input(id="account-number")
            yield Label("Saldo inicial", classes="form-label")
            yield Input(value="0", id="account-balance")
            yield Static("", id="account-error")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-account-cancel")
                yield Button("▶ Salvar", id="btn-account-confirm", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-account-confirm":
            self._do_save()
        else:
            self.dismiss(False)

    def _do_save(self) -> None:
        error = self.query_one("#account-error", Static)
        name = self.query_one("#account-name", Input).value.strip()
        if not name:
            error.update("Erro: nome da conta é obrigatório")
            return
        raw_balance = self.query_one("#account-balance", Input).value.strip() or "0"
        try:
            balance = parse_decimal(raw_balance.replace(",", "."), "Saldo inicial")
        except ValueError as e:
            error.update(f"Erro: {e}")
            return

        account = BankAccount(
            id=self.next_id,
            name=name,
            currency=Currency(self.query_one("#account-currency", Select).value),
            balance=balance,
            bank_name=self.query_one("#account-bank", Input).value.strip(),
            agency=self.query_one("#account-agency", Input).value.strip(),
            account_number=self.query_one("#account-number", Input).value.strip(),
        )
        try:
            self.app.ledger.save_many([], [account])  # type: ignore[attr-defined]
        except AduanaError as e:
            error.update(f"Erro: {e}")
            return
        logger.info("Bank account %d created (%s)", account.id, account.currency.value)
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class AccountStatementScreen(ModalScreen[None]):
    """Extrato: pagamentos baixados em uma conta, do mais antigo ao mais recente."""

    DEFAULT_CSS = """
    AccountStatementScreen {
        align: center middle;
        background: $surface 80%;
    }
    #statement-dialog {
        width: 110;
        height: 80%;
        background: $surface;
        border: thick $primary;
        padding: 1 2;
    }
    #statement-table {
        height: 1fr;
    }
    #statement-balance {
        height: auto;
        text-style: bold;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Fechar"),
    ]

    COLUMNS = ("Data", "Fatura", "Parceiro", "Tipo", "Valor", "Câmbio", "Na conta")

    def __init__(self, accounts: list[BankAccount], entries: list[LedgerEntry]) -> None:
        super().__init__()
        self.accounts = {a.id: a for a in accounts}
        self.entries = entries

    def compose(self) -> ComposeResult:
        first = next(iter(self.accounts))
        with Vertical(id="statement-dialog"):
            yield Static("[bold]Extrato da conta[/bold]")
            yield Select(
                [(f"{a.name} ({a.currency.value})", a.id) for a in self.accounts.values()],
                value=first,
                allow_blank=False,
                id="statement-account",
            )
            yield DataTable(id="statement-table", cursor_type="row")
            yield Static("", id="statement-balance")

    def on_mount(self) -> None:
        self.query_one("#statement-table", DataTable).add_columns(*self.COLUMNS)
        self.show_account(next(iter(self.accounts)))

    def on_select_changed(self, event: Select.Changed) -> None:
        columns = self.query_one("#statement-table", DataTable).columns
        if event.select.id == "statement-account" and columns and event.value in self.accounts:
            self.show_account(event.value)

    def show_account(self, account_id: int) -> None:
        account = self.accounts[account_id]
        table = self.query_one("#statement-table", DataTable)
        table.clear()
        for entry, payment in account_statement(self.entries, account_id):
            moved = payment.amount * (payment.exchange_rate or Decimal(1))
            if entry.type is EntryType.DEBIT:
                moved = -moved
            table.add_row(
                payment.date.strftime("%d/%m/%Y"),
                entry.invoice_id,
                entry.partner,
                "Recebimento" if entry.type is EntryType.CREDIT else "Pagamento",
                format_money(payment.amount, entry.currency.value),
                f"{payment.exchange_rate:.4f}" if payment.exchange_rate else "—",
                format_money(moved, account.currency.value),
                key=payment.id,
            )
        self.query_one("#statement-balance", Static).update(
            f"Saldo atual: {format_money(account.balance, account.currency.value)}"
        )

    def action_close(self) -> None:
        self.dismiss(None)
