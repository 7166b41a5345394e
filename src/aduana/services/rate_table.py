from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from aduana.models.simulation import LineItem, TaxRates
from aduana.services.exceptions import InvalidInputError, RateNotFoundError
from aduana.utils.validators import normalize_ncm

RATE_KEYS = ("ii", "ipi", "pis", "cofins")


class RateTable(Protocol):
    def lookup(self, ncm: str) -> TaxRates: ...


class YamlRateTable:
    """NCM -> federal import rates, loaded from ``ncm_rates.yaml``.

    Expected layout::

        "84713012":
          description: Notebooks
          ii: 16
          ipi: 0
          pis: 2.1
          cofins: 9.65
    """

    def __init__(self, rates: dict[str, TaxRates]) -> None:
        self._rates = {normalize_ncm(k): v for k, v in rates.items()}

    def __len__(self) -> int:
        return len(self._rates)

    def lookup(self, ncm: str) -> TaxRates:
        rates = self._rates.get(normalize_ncm(ncm))
        if rates is None:
            raise RateNotFoundError(ncm)
        return rates

    @classmethod
    def from_dict(cls, data: dict) -> YamlRateTable:
        """Build the table; a malformed row raises ValueError naming its NCM."""
        if not isinstance(data, dict):
            raise ValueError("esperado um mapeamento NCM -> alíquotas")
        rates = {}
        for ncm, row in data.items():
            missing = [k for k in RATE_KEYS if not isinstance(row, dict) or k not in row]
            if missing:
                raise ValueError(f"NCM {ncm}: faltando {', '.join(missing)}")
            try:
                rates[str(ncm)] = TaxRates.from_dict(row)
            except ValueError as e:
                raise ValueError(f"NCM {ncm}: {e}") from None
        return cls(rates)

    @classmethod
    def from_config(cls) -> YamlRateTable:
        from aduana.config import load_rate_table

        return cls.from_dict(load_rate_table())


def fill_tax_rates(items: Iterable[LineItem], table: RateTable) -> list[LineItem]:
    """Return items with rates looked up for every NCM.

    Items that already carry rates (manual override) are kept as they are.
    The first unknown NCM aborts with InvalidInputError naming the item.
    """
    filled = []
    for i, item in enumerate(items):
        if item.tax_rates is not None:
            filled.append(item)
            continue
        try:
            filled.append(item.with_tax_rates(table.lookup(item.ncm)))
        except RateNotFoundError as e:
            raise InvalidInputError(f"Item {i + 1}: {e}", field=f"items[{i}].ncm") from e
    return filled
