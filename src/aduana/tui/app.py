from __future__ import annotations

import logging

import yaml
from textual.app import App
from textual.binding import Binding

from aduana.services.exceptions import AduanaError

logger = logging.getLogger(__name__)


class AduanaApp(App):
    """Aduana TUI: ledger dashboard and saved DI simulations.

    Collaborators may be injected (tests); otherwise they are built from the
    user configuration when the app mounts.
    """

    CSS_PATH = "app.tcss"
    TITLE = "Aduana"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("q", "quit", "Sair"),
    ]

    def __init__(
        self, ledger=None, simulations=None, partners=None, exchange=None, ptax_client=None
    ):
        super().__init__()
        self.ledger = ledger
        self.simulations = simulations
        self.partners = partners
        self.exchange = exchange
        self.ptax_client = ptax_client

    def on_mount(self) -> None:
        from aduana.tui.screens.ledger import LedgerScreen

        if self.ledger is None:
            from aduana.utils.store import JsonLedgerStore

            self.ledger = JsonLedgerStore()
        if self.simulations is None:
            from aduana.utils.store import JsonSimulationStore

            self.simulations = JsonSimulationStore()
        if self.partners is None:
            from aduana.services.partners import load_partner_directory

            self.partners = load_partner_directory()
        if self.exchange is None:
            self.exchange = self._load_exchange()
        self.push_screen(LedgerScreen())

    def _load_exchange(self):
        from aduana.services.ptax_client import ExchangeRateTable

        try:
            return ExchangeRateTable.from_config()
        except (AduanaError, ValueError, yaml.YAMLError) as e:
            logger.warning("ptax.yaml ignored: %s", e)
            self.notify(f"Erro: ptax.yaml inválido: {e}", severity="error", timeout=8)
            return ExchangeRateTable()
