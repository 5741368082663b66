"""Compare the current tariff against one or more supplier offers."""

from ..models import (
    BillData,
    ComparisonResult,
    CostBreakdown,
    OfferData,
    RankedResult,
    SavedSimulation,
)
from ..tariffs import DEFAULT_VAT_RULES, VatRules, compute_cost

DAYS_PER_YEAR = 365


def yearly_projection(difference: float, billing_days: float) -> float | None:
    """Extrapolate a per-period difference linearly to a year.

    Returns None when the billing period length can't be divided by.
    """
    if billing_days <= 0:
        return None
    return difference * (DAYS_PER_YEAR / billing_days)


def _cost_with_prices(
    bill: BillData, power_price: float, energy_price: float, rules: VatRules
) -> CostBreakdown:
    return compute_cost(
        bill.consumption_kwh,
        bill.contracted_power_kva,
        bill.billing_period_days,
        power_price,
        energy_price,
        bill.taxes,
        rules,
    )


def current_cost(bill: BillData, rules: VatRules = DEFAULT_VAT_RULES) -> CostBreakdown:
    """Cost of the bill at its own effective unit prices."""
    return _cost_with_prices(
        bill,
        bill.current_power_price_per_day or 0.0,
        bill.current_energy_price_per_kwh or 0.0,
        rules,
    )


def offer_cost(
    bill: BillData, offer: OfferData, rules: VatRules = DEFAULT_VAT_RULES
) -> CostBreakdown:
    """Cost of the bill's consumption profile at an offer's unit prices."""
    return _cost_with_prices(bill, offer.power_price_per_day, offer.energy_price_per_kwh, rules)


def compare(
    bill: BillData, offer: OfferData, rules: VatRules = DEFAULT_VAT_RULES
) -> ComparisonResult | None:
    """Compare the current bill with a new offer.

    Both tariffs are costed against the same consumption, power, period and
    taxes. Returns None when the bill has no consumption.
    """
    if bill.consumption_kwh == 0:
        return None

    current = current_cost(bill, rules)
    new = offer_cost(bill, offer, rules)
    difference = current.total - new.total

    return ComparisonResult(
        current_total=current.total,
        new_total=new.total,
        current_base=current.base,
        new_base=new.base,
        difference=difference,
        is_cheaper=new.total < current.total,
        yearly_savings=yearly_projection(difference, bill.billing_period_days),
        energy_cost=(current.energy.total, new.energy.total),
        power_cost=(current.power.total, new.power.total),
        taxes_cost=(current.taxes.total, new.taxes.total),
    )


def rank_offers(
    bill: BillData,
    simulations: list[SavedSimulation],
    rules: VatRules = DEFAULT_VAT_RULES,
) -> list[RankedResult]:
    """Rank saved offers by total cost, cheapest first.

    Every offer is costed against the current bill, never against the bill
    stored in its own simulation. Offers with equal totals keep their
    original order.
    """
    if bill.consumption_kwh == 0 or not simulations:
        return []

    current_total = current_cost(bill, rules).total

    results = []
    for index, sim in enumerate(simulations):
        calc = offer_cost(bill, sim.new_offer, rules)
        results.append(
            RankedResult(
                simulation=sim,
                original_index=index,
                calculated_total=calc.total,
                yearly_savings=yearly_projection(current_total - calc.total, bill.billing_period_days),
                is_cheaper=calc.total < current_total,
                breakdown=calc,
            )
        )

    # sorted() is stable, ties stay in insertion order
    return sorted(results, key=lambda r: r.calculated_total)
