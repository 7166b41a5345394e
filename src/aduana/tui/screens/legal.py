from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, Static

from aduana.models.ledger import LedgerEntry, LegalStatus
from aduana.services.exceptions import AduanaError
from aduana.services.settlement import SettlementEngine
from aduana.utils.formatters import format_money


class LegalReferralScreen(ModalScreen[bool]):
    """Encaminha um lançamento em aberto ao jurídico."""

    DEFAULT_CSS = """
    LegalReferralScreen {
        align: center middle;
        background: $surface 80%;
    }
    #legal-dialog {
        width: 70;
        height: auto;
        background: $surface;
        border: thick $error;
        padding: 1 2;
    }
    #legal-error {
        color: $error;
        height: auto;
    }
    #legal-dialog .button-bar {
        height: 3;
        margin-top: 1;
        align-horizontal: right;
    }
    #legal-dialog .button-bar Button {
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
        with Vertical(id="legal-dialog"):
            yield Static(
                f"[bold]Enviar ao jurídico[/bold]: fatura {entry.invoice_id} ({entry.partner})\n"
                f"Saldo devedor: {format_money(entry.balance, entry.currency.value)}",
                id="legal-title",
            )
            yield Label("Fase", classes="form-label")
            yield Select(
                [(s.value, s) for s in LegalStatus],
                value=entry.legal_status or LegalStatus.INITIAL,
                allow_blank=False,
                id="legal-status",
            )
            yield Label("Processo", classes="form-label")
            yield Input(
                value=entry.court_case or "", placeholder="nº do processo", id="legal-case"
            )
            yield Label("Observações", classes="form-label")
            yield Input(value=entry.legal_comments or "", id="legal-comments")
            yield Static("", id="legal-error")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-legal-cancel")
                yield Button("▶ Enviar", id="btn-legal-confirm", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-legal-confirm":
            self._do_send()
        else:
            self.dismiss(False)

    def _do_send(self) -> None:
        status = self.query_one("#legal-status", Select).value
        court_case = self.query_one("#legal-case", Input).value.strip()
        comments = self.query_one("#legal-comments", Input).value.strip()
        try:
            self.engine.send_to_legal(
                self.entry,
                LegalStatus(status),
                comments=comments or None,
                court_case=court_case or None,
            )
        except AduanaError as e:
            self.query_one("#legal-error", Static).update(f"Erro: {e}")
            return
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)
