"""Plain-text reports for a comparison and for a ranking of saved offers."""

from datetime import datetime

from ..models import BillData, ComparisonResult, OfferData, RankedResult
from ..simulations import filename_slug, file_timestamp

RULE = "-" * 41
BANNER = "=" * 41


def fmt(value: float) -> str:
    """Format an amount with two decimals, no currency symbol."""
    return f"{value:.2f}"


def report_filename(offer: OfferData, now: datetime | None = None) -> str:
    return f"Report_{filename_slug(offer.supplier_name, 'New_Offer')}_{file_timestamp(now)}.txt"


def format_comparison_report(
    bill: BillData,
    offer: OfferData,
    result: ComparisonResult,
    generated_at: datetime | None = None,
) -> str:
    """Format a comparison as a human-readable text report."""
    generated_at = generated_at or datetime.now()
    supplier = offer.supplier_name or "Not specified"
    sign = "-" if result.is_cheaper else "+"
    yearly = fmt(result.yearly_savings) if result.yearly_savings is not None else "n/a"

    lines = [
        BANNER,
        "      ELECTRICITY TARIFF COMPARISON",
        BANNER,
        f"Generated: {generated_at.strftime('%Y-%m-%d at %H:%M:%S')}",
        f"Supplier analysed: {supplier}",
        "",
        "CONSUMPTION DATA",
        RULE,
        f"Consumption: {bill.consumption_kwh:g} kWh",
        f"Contracted power: {bill.contracted_power_kva:g} kVA",
        f"Billing period: {bill.billing_period_days:g} days",
        "",
        "FINANCIAL SUMMARY (PER PERIOD)",
        RULE,
        f"Current bill (estimated, VAT incl.): {fmt(result.current_total)} EUR",
        f"New offer ({offer.supplier_name or 'New'}): {fmt(result.new_total)} EUR",
        f"Current bill without VAT: {fmt(result.current_base)} EUR",
        f"New offer without VAT: {fmt(result.new_base)} EUR",
        "",
        f"RESULT: {'SAVING' if result.is_cheaper else 'INCREASE'}",
        f"Monthly difference: {sign}{fmt(abs(result.difference))} EUR",
        f"Estimated annual savings: {yearly} EUR",
        "",
        "NEW OFFER DETAILS (unit prices, VAT excl.)",
        RULE,
        f"Energy: {offer.energy_price_per_kwh:g} EUR/kWh",
        f"Power: {offer.power_price_per_day:g} EUR/day",
        "",
        "COST BREAKDOWN (VAT incl.)",
        RULE,
    ]

    for label, (current, new) in (
        ("Energy", result.energy_cost),
        ("Power", result.power_cost),
        ("Taxes and levies", result.taxes_cost),
    ):
        lines.extend([
            f"[{label}]",
            f"Current: {fmt(current)} EUR",
            f"New:     {fmt(new)} EUR",
            "",
        ])

    lines.extend([RULE, "Generated by compare-energy"])
    return "\n".join(lines) + "\n"


def format_ranking_report(results: list[RankedResult], current_total: float | None = None) -> str:
    """Format ranked offers as text, cheapest first."""
    if not results:
        return "No offers to rank.\n"

    lines = ["OFFER RANKING (VAT incl.)", RULE]
    if current_total is not None:
        lines.append(f"Current bill: {fmt(current_total)} EUR")
        lines.append("")

    for position, r in enumerate(results, 1):
        yearly = fmt(r.yearly_savings) if r.yearly_savings is not None else "n/a"
        lines.append(
            f"{position}. {r.simulation.supplier_label}: {fmt(r.calculated_total)} EUR "
            f"(annual {yearly} EUR{', cheaper' if r.is_cheaper else ''})"
        )
        lines.append(
            f"   energy {fmt(r.breakdown.energy.total)} | power {fmt(r.breakdown.power.total)} "
            f"| taxes {fmt(r.breakdown.taxes.total)} EUR"
        )

    return "\n".join(lines) + "\n"
