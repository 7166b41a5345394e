from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum

from aduana.services.exceptions import InvalidInputError
from aduana.utils.validators import (
    validate_ncm,
    validate_non_negative,
    validate_percent,
    validate_positive,
)


class Modal(str, Enum):
    MARITIMO = "maritimo"
    AEREO = "aereo"
    RODOVIARIO = "rodoviario"


@dataclass(frozen=True)
class TaxRates:
    """Federal import rates for one NCM, as percentages (10 means 10%)."""

    ii: Decimal
    ipi: Decimal
    pis: Decimal
    cofins: Decimal
    description: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> TaxRates:
        return cls(
            ii=validate_percent(d["ii"], "II"),
            ipi=validate_percent(d["ipi"], "IPI"),
            pis=validate_percent(d["pis"], "PIS"),
            cofins=validate_percent(d["cofins"], "COFINS"),
            description=str(d.get("description", "")),
        )

    def to_dict(self) -> dict:
        return {
            "ii": str(self.ii),
            "ipi": str(self.ipi),
            "pis": str(self.pis),
            "cofins": str(self.cofins),
            "description": self.description,
        }


@dataclass(frozen=True)
class LineItem:
    """One commercial-invoice line. Tax rates are attached after the NCM lookup."""

    description: str
    quantity: Decimal
    unit_price_usd: Decimal
    ncm: str
    weight_kg: Decimal
    tax_rates: TaxRates | None = None

    @property
    def fob_usd(self) -> Decimal:
        return self.quantity * self.unit_price_usd

    def with_tax_rates(self, rates: TaxRates) -> LineItem:
        return replace(self, tax_rates=rates)

    @classmethod
    def from_dict(cls, d: dict) -> LineItem:
        description = str(d.get("description", "")).strip()
        if not description:
            raise ValueError("Descrição: obrigatória")
        rates = d.get("tax_rates")
        return cls(
            description=description,
            quantity=validate_positive(d["quantity"], "Quantidade"),
            unit_price_usd=validate_positive(d["unit_price_usd"], "Valor unitário USD"),
            ncm=validate_ncm(d["ncm"]),
            weight_kg=validate_positive(d["weight_kg"], "Peso (kg)"),
            tax_rates=TaxRates.from_dict(rates) if rates else None,
        )

    def to_dict(self) -> dict:
        d = {
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price_usd": str(self.unit_price_usd),
            "ncm": self.ncm,
            "weight_kg": str(self.weight_kg),
        }
        if self.tax_rates is not None:
            d["tax_rates"] = self.tax_rates.to_dict()
        return d


@dataclass(frozen=True)
class LocalExpense:
    name: str
    value_brl: Decimal


@dataclass(frozen=True)
class SimulationInput:
    """Validated input of a DI simulation.

    Build it with ``from_dict``; the factory rejects partial data so that
    ``allocate`` only ever sees well-formed values.
    """

    items: tuple[LineItem, ...]
    freight_cost_usd: Decimal
    insurance_cost_usd: Decimal
    exchange_rate_di: Decimal
    icms_rate_percent: Decimal
    local_expenses: tuple[LocalExpense, ...] = ()
    modal: Modal = Modal.MARITIMO
    pis_cofins_base_includes_ii: bool = True

    @property
    def missing_rates(self) -> list[int]:
        """Indexes of items still waiting for the NCM rate lookup."""
        return [i for i, item in enumerate(self.items) if item.tax_rates is None]

    def with_items(self, items: list[LineItem] | tuple[LineItem, ...]) -> SimulationInput:
        return replace(self, items=tuple(items))

    @classmethod
    def from_dict(cls, d: dict) -> SimulationInput:
        """Create a SimulationInput from a YAML/JSON dict, raising InvalidInputError."""
        raw_items = d.get("items") or []
        if not raw_items:
            raise InvalidInputError("Adicione pelo menos um item.", field="items")

        items = []
        for i, raw in enumerate(raw_items):
            try:
                items.append(LineItem.from_dict(raw))
            except KeyError as e:
                raise InvalidInputError(
                    f"Item {i + 1}: campo obrigatório ausente: {e.args[0]}",
                    field=f"items[{i}].{e.args[0]}",
                ) from None
            except ValueError as e:
                raise InvalidInputError(f"Item {i + 1}: {e}", field=f"items[{i}]") from None

        expenses = []
        for i, raw in enumerate(d.get("local_expenses") or []):
            try:
                expenses.append(
                    LocalExpense(
                        name=str(raw["name"]),
                        value_brl=validate_non_negative(raw["value_brl"], raw["name"]),
                    )
                )
            except (KeyError, ValueError) as e:
                raise InvalidInputError(
                    f"Despesa local {i + 1} inválida: {e}", field=f"local_expenses[{i}]"
                ) from None

        modal = d.get("modal", Modal.MARITIMO.value)
        try:
            modal = Modal(modal)
        except ValueError:
            raise InvalidInputError(f"Modal inválido: {modal}", field="modal") from None

        return cls(
            items=tuple(items),
            freight_cost_usd=_field(validate_non_negative, d, "freight_cost_usd", "Frete USD"),
            insurance_cost_usd=_field(
                validate_non_negative, d, "insurance_cost_usd", "Seguro USD", default="0"
            ),
            exchange_rate_di=_field(validate_positive, d, "exchange_rate_di", "Taxa de câmbio DI"),
            icms_rate_percent=_field(validate_percent, d, "icms_rate", "ICMS"),
            local_expenses=tuple(expenses),
            modal=modal,
            pis_cofins_base_includes_ii=_flag(
                d, "pis_cofins_base_includes_ii", "Base PIS/COFINS inclui II", True
            ),
        )

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "freight_cost_usd": str(self.freight_cost_usd),
            "insurance_cost_usd": str(self.insurance_cost_usd),
            "exchange_rate_di": str(self.exchange_rate_di),
            "icms_rate": str(self.icms_rate_percent),
            "local_expenses": [
                {"name": e.name, "value_brl": str(e.value_brl)} for e in self.local_expenses
            ],
            "modal": self.modal.value,
            "pis_cofins_base_includes_ii": self.pis_cofins_base_includes_ii,
        }


def _field(validator, d: dict, key: str, label: str, default: str | None = None) -> Decimal:
    if key not in d or d[key] is None:
        if default is None:
            raise InvalidInputError(f"{label}: obrigatório", field=key)
        return validator(default, label)
    try:
        return validator(d[key], label)
    except ValueError as e:
        raise InvalidInputError(str(e), field=key) from None


_TRUE = frozenset({"1", "true", "sim", "s", "yes", "y"})
_FALSE = frozenset({"0", "false", "nao", "não", "n", "no"})


def _flag(d: dict, key: str, label: str, default: bool) -> bool:
    value = d.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in _TRUE:
        return True
    if token in _FALSE:
        return False
    raise InvalidInputError(f"{label}: valor inválido ({value!r}); use sim ou não", field=key)


@dataclass(frozen=True)
class LineItemResult:
    """Allocated costs of one line item (all BRL, full precision)."""

    item: LineItem
    share: Decimal
    customs_value: Decimal
    ii: Decimal
    ipi: Decimal
    pis: Decimal
    cofins: Decimal
    icms: Decimal
    local_expenses: Decimal

    @property
    def taxes(self) -> Decimal:
        return self.ii + self.ipi + self.pis + self.cofins + self.icms

    @property
    def total_cost(self) -> Decimal:
        return self.customs_value + self.taxes + self.local_expenses

    @property
    def final_unit_cost(self) -> Decimal:
        return self.total_cost / self.item.quantity


@dataclass(frozen=True)
class CostResult:
    customs_value_brl: Decimal
    total_ii: Decimal
    total_ipi: Decimal
    total_pis: Decimal
    total_cofins: Decimal
    total_icms: Decimal
    icms_base: Decimal
    storage_brl: Decimal
    afrmm_brl: Decimal
    total_local_expenses_brl: Decimal
    items: tuple[LineItemResult, ...] = field(default_factory=tuple)

    @property
    def total_taxes_brl(self) -> Decimal:
        return self.total_ii + self.total_ipi + self.total_pis + self.total_cofins + self.total_icms

    @property
    def total_cost_brl(self) -> Decimal:
        return self.customs_value_brl + self.total_taxes_brl + self.total_local_expenses_brl
