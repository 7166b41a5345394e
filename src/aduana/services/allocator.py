"""Landed-cost simulation of an import declaration (DI).

Turns a commercial invoice into customs value, federal/state taxes and a
fully allocated unit cost per line item. Shared costs are apportioned by each
item's share of the total FOB value ("rateio").

All arithmetic runs on Decimal with a widened context; results keep full
precision and are only rounded for display.
"""

from __future__ import annotations

from decimal import Decimal, localcontext

from aduana.config import AFRMM_RATE, STORAGE_MIN_BRL, STORAGE_RATE
from aduana.models.simulation import CostResult, LineItemResult, Modal, SimulationInput
from aduana.services.exceptions import InvalidInputError

ALLOCATION_PRECISION = 40

_HUNDRED = Decimal(100)


def _check_input(sim: SimulationInput) -> Decimal:
    """Validate what allocation needs and return the total FOB in USD."""
    if not sim.items:
        raise InvalidInputError("Adicione pelo menos um item.", field="items")
    missing = sim.missing_rates
    if missing:
        ncms = ", ".join(sim.items[i].ncm for i in missing)
        raise InvalidInputError(
            f"Carregue as alíquotas de todos os NCMs antes de calcular: {ncms}",
            field=f"items[{missing[0]}].tax_rates",
        )
    total_fob = sum((item.fob_usd for item in sim.items), Decimal(0))
    if total_fob <= 0:
        raise InvalidInputError("Valor FOB total deve ser maior que zero", field="items")
    return total_fob


def compute_customs_value(sim: SimulationInput) -> Decimal:
    """Valor aduaneiro: (FOB + freight + insurance) converted at the DI rate."""
    with localcontext() as ctx:
        ctx.prec = ALLOCATION_PRECISION
        total_fob = _check_input(sim)
        return (total_fob + sim.freight_cost_usd + sim.insurance_cost_usd) * sim.exchange_rate_di


def computed_expenses(sim: SimulationInput, customs_value: Decimal) -> tuple[Decimal, Decimal]:
    """Storage and AFRMM charged on maritime shipments; (0, 0) for other modals."""
    if sim.modal is not Modal.MARITIMO:
        return Decimal(0), Decimal(0)
    storage = max(STORAGE_MIN_BRL, customs_value * STORAGE_RATE)
    afrmm = sim.freight_cost_usd * sim.exchange_rate_di * AFRMM_RATE
    return storage, afrmm


def allocate(sim: SimulationInput) -> CostResult:
    """Compute taxes and allocated landed cost for every line item.

    Cascade per item: II on customs value, IPI on (CV + II), PIS/COFINS on
    CV or (CV + II) depending on ``pis_cofins_base_includes_ii``. ICMS is
    grossed up once on the totals ("por dentro") and then allocated by share,
    so the sum of the parts always matches the aggregate.

    Raises InvalidInputError for missing rates, zero FOB or ICMS >= 100%.
    """
    if sim.icms_rate_percent >= _HUNDRED:
        raise InvalidInputError("Alíquota de ICMS deve ser menor que 100%", field="icms_rate")

    with localcontext() as ctx:
        ctx.prec = ALLOCATION_PRECISION

        total_fob = _check_input(sim)
        customs_value = compute_customs_value(sim)

        shares = [item.fob_usd / total_fob for item in sim.items]

        partial = []
        for item, share in zip(sim.items, shares):
            rates = item.tax_rates
            cv = customs_value * share
            ii = cv * rates.ii / _HUNDRED
            ipi = (cv + ii) * rates.ipi / _HUNDRED
            pis_cofins_base = cv + ii if sim.pis_cofins_base_includes_ii else cv
            pis = pis_cofins_base * rates.pis / _HUNDRED
            cofins = pis_cofins_base * rates.cofins / _HUNDRED
            partial.append((item, share, cv, ii, ipi, pis, cofins))

        total_ii = sum((p[3] for p in partial), Decimal(0))
        total_ipi = sum((p[4] for p in partial), Decimal(0))
        total_pis = sum((p[5] for p in partial), Decimal(0))
        total_cofins = sum((p[6] for p in partial), Decimal(0))

        icms_rate = sim.icms_rate_percent / _HUNDRED
        icms_base = (customs_value + total_ii + total_ipi + total_pis + total_cofins) / (
            1 - icms_rate
        )
        total_icms = icms_base * icms_rate

        storage, afrmm = computed_expenses(sim, customs_value)
        manual = sum((e.value_brl for e in sim.local_expenses), Decimal(0))
        total_local = manual + storage + afrmm

        results = tuple(
            LineItemResult(
                item=item,
                share=share,
                customs_value=cv,
                ii=ii,
                ipi=ipi,
                pis=pis,
                cofins=cofins,
                icms=total_icms * share,
                local_expenses=total_local * share,
            )
            for item, share, cv, ii, ipi, pis, cofins in partial
        )

        return CostResult(
            customs_value_brl=customs_value,
            total_ii=total_ii,
            total_ipi=total_ipi,
            total_pis=total_pis,
            total_cofins=total_cofins,
            total_icms=total_icms,
            icms_base=icms_base,
            storage_brl=storage,
            afrmm_brl=afrmm,
            total_local_expenses_brl=total_local,
            items=results,
        )
