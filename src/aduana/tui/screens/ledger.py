from __future__ import annotations

import logging

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Label, Select, Static

from aduana.models.ledger import Currency, EntryStatus, EntryType, LedgerEntry
from aduana.services.exceptions import AduanaError, MissingExchangeRateError
from aduana.services.presenter import (
    filter_entries,
    legal_entries,
    sort_entries,
    status_label,
    totals_by_currency,
)
from aduana.services.settlement import SettlementEngine
from aduana.utils.formatters import format_brl, format_money

logger = logging.getLogger(__name__)

FILTER_OPTIONS = [
    ("Todos", "all"),
    ("Vence hoje", "due_today"),
    ("Vence este mês", "due_this_month"),
]

COLUMNS = ("Fatura", "Parceiro", "Tipo", "Vencimento", "Valor", "Saldo", "Saldo BRL", "Status")


class LedgerScreen(Screen):
    """Contas a receber / a pagar with filters and a legal tab."""

    BINDINGS = [
        Binding("n", "new_entry", "Novo lançamento"),
        Binding("b", "pay", "Baixar"),
        Binding("g", "renegotiate", "Renegociar"),
        Binding("a", "approval", "Aprovação"),
        Binding("x", "legal", "Enviar/retirar jurídico"),
        Binding("l", "toggle_legal", "Aba jurídico"),
        Binding("c", "new_account", "Nova conta"),
        Binding("e", "statement", "Extrato"),
        Binding("p", "refresh_ptax", "Atualizar PTAX"),
        Binding("s", "simulations", "Simulações"),
        Binding("r", "reload", "Recarregar"),
        Binding("q", "quit", "Sair"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._entries: list[LedgerEntry] = []
        self.show_legal = False
        self.engine = SettlementEngine()

    def compose(self) -> ComposeResult:
        with Horizontal(id="top-bar"):
            yield Static("Aduana · Financeiro", id="app-title")
            yield Static("", id="ptax-info")

        with Horizontal(id="info-bar"):
            with Vertical(id="card-totals", classes="info-card"):
                yield Label("Saldo em aberto", classes="card-title")
                yield Label("…", id="totals-info", classes="card-value")
            with Vertical(id="card-count", classes="info-card"):
                yield Label("Lançamentos", classes="card-title")
                yield Label("…", id="count-info", classes="card-value")

        with Horizontal(id="filter-bar"):
            yield Static("Lançamentos", id="section-title")
            yield Select(
                FILTER_OPTIONS,
                value="all",
                allow_blank=False,
                id="filter-periodo",
                tooltip="Filtrar por vencimento",
            )

        yield DataTable(id="ledger-table", cursor_type="row")
        yield Static("Nenhum lançamento encontrado.", id="empty-state")
        yield Footer()

    def on_mount(self) -> None:
        self.engine = SettlementEngine(store=self.app.ledger)  # type: ignore[attr-defined]
        table = self.query_one("#ledger-table", DataTable)
        table.add_columns(*COLUMNS)
        self._load()
        table.focus()

    def on_key(self, event: Key) -> None:
        table = self.query_one("#ledger-table", DataTable)
        match event.key:
            case "j":
                table.action_cursor_down()
            case "k":
                table.action_cursor_up()
            case _:
                return
        event.prevent_default()
        event.stop()

    # --- Data ---

    def _load(self) -> None:
        self._entries = self.app.ledger.list()  # type: ignore[attr-defined]
        totals = totals_by_currency(self._entries)
        text = "\n".join(format_money(v, c.value) for c, v in sorted(totals.items())) or "—"
        self.query_one("#totals-info", Label).update(text)
        self.query_one("#count-info", Label).update(str(len(self._entries)))
        self._update_ptax_info()
        self._apply_filter()

    def _update_ptax_info(self) -> None:
        rates = self.app.exchange.as_mapping()  # type: ignore[attr-defined]
        usd = rates.get(Currency.USD)
        text = f"PTAX USD {usd:.4f}" if usd is not None else "PTAX indisponível"
        self.query_one("#ptax-info", Static).update(text)

    def _brl_balance(self, entry: LedgerEntry) -> str:
        app = self.app
        try:
            value = self.engine.get_balance_in_brl(
                entry,
                app.partners,  # type: ignore[attr-defined]
                app.exchange.as_mapping(),  # type: ignore[attr-defined]
            )
        except MissingExchangeRateError:
            return "—"
        return format_brl(value)

    def visible_entries(self) -> list[LedgerEntry]:
        if self.show_legal:
            return sort_entries(legal_entries(self._entries))
        active = self.query_one("#filter-periodo", Select).value
        return sort_entries(filter_entries(self._entries, str(active)))

    def _apply_filter(self) -> None:
        rows = self.visible_entries()
        table = self.query_one("#ledger-table", DataTable)
        table.clear()
        today = self.engine.today()
        for entry in rows:
            table.add_row(
                entry.invoice_id,
                entry.partner,
                "Receber" if entry.type is EntryType.CREDIT else "Pagar",
                entry.due_date.strftime("%d/%m/%Y"),
                format_money(entry.amount, entry.currency.value),
                format_money(entry.balance, entry.currency.value),
                self._brl_balance(entry),
                status_label(entry, today),
                key=entry.id,
            )
        self.query_one("#empty-state", Static).display = not rows
        title = "Jurídico" if self.show_legal else "Lançamentos"
        self.query_one("#section-title", Static).update(title)

    def selected_entry(self) -> LedgerEntry | None:
        table = self.query_one("#ledger-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next((e for e in self._entries if e.id == row_key.value), None)

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "filter-periodo":
            self._apply_filter()

    # --- Actions ---

    def action_toggle_legal(self) -> None:
        self.show_legal = not self.show_legal
        self._apply_filter()

    def action_reload(self) -> None:
        self._load()
        self.notify(f"{len(self._entries)} lançamento(s) carregado(s)", timeout=2)

    def action_simulations(self) -> None:
        from aduana.tui.screens.simulations import SimulationScreen

        self.app.push_screen(SimulationScreen(), self._after_simulations)

    def _after_simulations(self, launched: int | None) -> None:
        if launched:
            self._load()

    def action_new_entry(self) -> None:
        from aduana.tui.screens.entry import NewEntryScreen

        self.app.push_screen(NewEntryScreen(), self._after_new_entry)

    def _after_new_entry(self, saved: bool | None) -> None:
        if saved:
            self.notify("Lançamento cadastrado", timeout=3)
            self._load()

    def action_new_account(self) -> None:
        from aduana.tui.screens.accounts import BankAccountScreen

        accounts = self.app.ledger.list_accounts()  # type: ignore[attr-defined]
        self.app.push_screen(BankAccountScreen(accounts), self._after_new_account)

    def _after_new_account(self, saved: bool | None) -> None:
        if saved:
            self.notify("Conta bancária cadastrada", timeout=3)

    def action_statement(self) -> None:
        from aduana.tui.screens.accounts import AccountStatementScreen

        accounts = self.app.ledger.list_accounts()  # type: ignore[attr-defined]
        if not accounts:
            self.notify("Nenhuma conta bancária cadastrada", severity="error", timeout=4)
            return
        self.app.push_screen(AccountStatementScreen(accounts, self._entries))

    def action_pay(self) -> None:
        from aduana.tui.screens.payment import PaymentScreen

        entry = self.selected_entry()
        if entry is None:
            self.notify("Selecione um lançamento", severity="warning", timeout=3)
            return
        accounts = self.app.ledger.list_accounts()  # type: ignore[attr-defined]
        if not accounts:
            self.notify("Nenhuma conta bancária cadastrada", severity="error", timeout=4)
            return
        self.app.push_screen(PaymentScreen(entry, accounts, self.engine), self._after_payment)

    def _after_payment(self, paid: bool | None) -> None:
        if paid:
            self.notify("Pagamento registrado", timeout=3)
            self._load()

    def action_renegotiate(self) -> None:
        from aduana.tui.screens.renegotiation import RenegotiationScreen

        entry = self.selected_entry()
        if entry is None:
            self.notify("Selecione um lançamento", severity="warning", timeout=3)
            return
        self.app.push_screen(RenegotiationScreen(entry, self.engine), self._after_renegotiation)

    def _after_renegotiation(self, done: bool | None) -> None:
        if done:
            self.notify("Lançamento renegociado", timeout=3)
            self._load()

    def action_approval(self) -> None:
        """Request approval for an open entry, or approve a pending one."""
        entry = self.selected_entry()
        if entry is None:
            return
        try:
            if entry.status_override is EntryStatus.PENDING_APPROVAL:
                self.engine.approve(entry)
                message = "Lançamento aprovado"
            else:
                self.engine.request_approval(entry)
                message = "Lançamento aguardando aprovação"
        except AduanaError as e:
            self.notify(f"Erro: {e}", severity="error", timeout=5)
            return
        self.notify(message, timeout=3)
        self._load()

    def action_legal(self) -> None:
        from aduana.tui.screens.legal import LegalReferralScreen

        entry = self.selected_entry()
        if entry is None:
            return
        if entry.status_override is not EntryStatus.LEGAL:
            self.app.push_screen(LegalReferralScreen(entry, self.engine), self._after_legal)
            return
        try:
            self.engine.revert_override(entry)
        except AduanaError as e:
            self.notify(f"Erro: {e}", severity="error", timeout=5)
            return
        self.notify("Lançamento retirado do jurídico", timeout=3)
        self._load()

    def _after_legal(self, sent: bool | None) -> None:
        if sent:
            self.notify("Lançamento enviado ao jurídico", timeout=3)
            self._load()

    def action_refresh_ptax(self) -> None:
        self.notify("Consultando PTAX no Banco Central…", timeout=3)
        self._fetch_ptax()

    @work(thread=True, exclusive=True)
    def _fetch_ptax(self) -> None:
        from aduana.services.ptax_client import PtaxClient

        client = self.app.ptax_client or PtaxClient()  # type: ignore[attr-defined]
        failed = self.app.exchange.refresh(client)  # type: ignore[attr-defined]
        self.app.call_from_thread(self._on_ptax_done, failed)

    def _on_ptax_done(self, failed: list[Currency]) -> None:
        if failed:
            codes = ", ".join(c.value for c in failed)
            logger.warning("PTAX indisponível para %s; mantendo cotações anteriores", codes)
            self.notify(f"PTAX indisponível para {codes}", severity="warning", timeout=5)
        else:
            self.notify("Cotações PTAX atualizadas", timeout=3)
        self._load()
