"""Command-line interface for comparing electricity tariffs."""

import json
from dataclasses import asdict
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.table import Table

from .collectors.gemini import ExtractionError, extract_bill_data
from .collectors.uploads import ValidationError, guess_mime_type, validate_upload
from .config import get_vat_rules_path
from .log import configure_logging, get_logger
from .models import BillData, ComparisonResult, CostBreakdown
from .reports.comparison_report import (
    fmt,
    format_comparison_report,
    format_ranking_report,
    report_filename,
)
from .session import ComparisonSession
from .simulations import save_simulation
from .tariffs import DEFAULT_CONFIG_PATH, DEFAULT_VAT_RULES, describe_rules, load_vat_rules

console = Console()
logger = get_logger(__name__)

NonNegative = click.FloatRange(min=0)

# CLI option name -> BillData attribute
BILL_OVERRIDES = {
    "consumption": "consumption_kwh",
    "power": "contracted_power_kva",
    "days": "billing_period_days",
    "power_price": "current_power_price_per_day",
    "energy_price": "current_energy_price_per_kwh",
    "cav": "audiovisual_tax",
    "dgeg": "dgeg_tax",
    "iec": "iec_tax",
    "social": "social_tariff",
    "total": "total_amount",
}


def bill_options(f):
    """Options describing the current bill, shared by compare and rank."""
    options = [
        click.option("--bill", "bill_path", type=click.Path(exists=True, dir_okay=False),
                     help="Bill (PDF/image) to extract, or a saved simulation (.json)"),
        click.option("--consumption", type=NonNegative, help="Consumption in the period (kWh)"),
        click.option("--power", type=NonNegative, help="Contracted power (kVA)"),
        click.option("--days", type=click.FloatRange(min=0, min_open=True), help="Billing period length (days)"),
        click.option("--power-price", type=NonNegative, help="Current power price (EUR/day, VAT excl.)"),
        click.option("--energy-price", type=NonNegative, help="Current energy price (EUR/kWh, VAT excl.)"),
        click.option("--cav", type=NonNegative, help="Audiovisual contribution (EUR)"),
        click.option("--dgeg", type=NonNegative, help="DGEG exploration tax (EUR)"),
        click.option("--iec", type=NonNegative, help="Special consumption tax (EUR)"),
        click.option("--social", type=click.FloatRange(max=0), help="Social tariff credit (EUR, <= 0)"),
        click.option("--total", type=NonNegative, help="Total stated on the bill (EUR)"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def build_session(ctx, bill_path: str | None, overrides: dict) -> ComparisonSession:
    """Create a session, load the bill file if any and apply overrides."""
    session = ComparisonSession(rules=ctx.obj["rules"])

    if bill_path:
        console.print(f"[cyan]Loading {bill_path}...[/cyan]")
        if not session.load_path(Path(bill_path)):
            raise click.ClickException(session.error_message or f"Could not load {bill_path}")

    changes = {BILL_OVERRIDES[k]: v for k, v in overrides.items() if k in BILL_OVERRIDES and v is not None}
    if changes:
        try:
            session.update_bill(**changes)
        except ValueError as e:
            raise click.BadParameter(str(e))
    return session


def bill_table(bill: BillData) -> Table:
    table = Table(title="Current Bill")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Consumption", f"{bill.consumption_kwh:g} kWh")
    table.add_row("Contracted power", f"{bill.contracted_power_kva:g} kVA")
    table.add_row("Billing period", f"{bill.billing_period_days:g} days")
    table.add_row(
        "Power price",
        f"{bill.current_power_price_per_day:g} EUR/day" if bill.current_power_price_per_day is not None else "N/A",
    )
    table.add_row(
        "Energy price",
        f"{bill.current_energy_price_per_kwh:g} EUR/kWh" if bill.current_energy_price_per_kwh is not None else "N/A",
    )
    table.add_row("Audiovisual contribution", f"{fmt(bill.audiovisual_tax)} EUR")
    table.add_row("DGEG tax", f"{fmt(bill.dgeg_tax)} EUR")
    table.add_row("IEC tax", f"{fmt(bill.iec_tax)} EUR")
    table.add_row("Social tariff", f"{fmt(bill.social_tariff)} EUR")
    table.add_row("Total on bill", f"{fmt(bill.total_amount)} EUR")
    return table


def comparison_table(current: CostBreakdown, result: ComparisonResult, supplier: str) -> Table:
    table = Table(title=f"Current vs {supplier}")
    table.add_column("Item (VAT incl.)", style="cyan")
    table.add_column("Current", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Difference", justify="right")

    for label, (cur, new) in (
        ("Energy", result.energy_cost),
        ("Power", result.power_cost),
        ("Taxes and levies", result.taxes_cost),
    ):
        table.add_row(label, fmt(cur), fmt(new), fmt(cur - new))

    table.add_row("Total without VAT", fmt(result.current_base), fmt(result.new_base),
                  fmt(result.current_base - result.new_base), style="dim")
    table.add_row("Total with VAT", fmt(result.current_total), fmt(result.new_total),
                  fmt(result.difference), style="bold")
    return table


@click.group()
@click.option("--vat-rules", type=click.Path(exists=True, dir_okay=False),
              help="YAML file overriding the VAT rates and brackets")
@click.option("-v", "--verbose", is_flag=True, help="Show progress logging")
@click.pass_context
def cli(ctx, vat_rules, verbose):
    """Compare your electricity tariff against supplier offers."""
    ctx.ensure_object(dict)
    configure_logging("INFO" if verbose else None)

    # Explicit option, then COMPARE_ENERGY_VAT_RULES, then the shipped config
    rules_path = Path(vat_rules) if vat_rules else get_vat_rules_path()
    if rules_path is None and DEFAULT_CONFIG_PATH.exists():
        rules_path = DEFAULT_CONFIG_PATH

    if rules_path is None:
        ctx.obj["rules"] = DEFAULT_VAT_RULES
        return
    try:
        ctx.obj["rules"] = load_vat_rules(rules_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Could not load VAT rules from {rules_path}: {e}")
    logger.info("VAT rules loaded from %s", rules_path)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def extract(file, as_json):
    """Extract bill fields from a PDF or image."""
    path = Path(file)
    content = path.read_bytes()
    try:
        mime_type = validate_upload(path.name, content, guess_mime_type(path))
        if mime_type == "application/json":
            raise ValidationError(f"{path.name} is a saved simulation, not a bill")
        console.print(f"[cyan]Analysing {path.name}...[/cyan]")
        bill = extract_bill_data(content, mime_type)
    except (ValidationError, ExtractionError, ValueError) as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(asdict(bill), indent=2))
    else:
        console.print(bill_table(bill))


@cli.command("compare")
@bill_options
@click.option("--supplier", help="Name of the new supplier")
@click.option("--offer-power-price", type=NonNegative, help="Offer power price (EUR/day, VAT excl.)")
@click.option("--offer-energy-price", type=NonNegative, help="Offer energy price (EUR/kWh, VAT excl.)")
@click.option("--report", "report_dir", type=click.Path(file_okay=False), help="Write a text report to this directory")
@click.option("--save", "save_dir", type=click.Path(file_okay=False), help="Save the simulation to this directory")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def compare_cmd(ctx, bill_path, supplier, offer_power_price, offer_energy_price, report_dir, save_dir, as_json,
                **overrides):
    """Compare the current bill with a new offer."""
    session = build_session(ctx, bill_path, overrides)

    offer_changes = {
        "supplier_name": supplier,
        "power_price_per_day": offer_power_price,
        "energy_price_per_kwh": offer_energy_price,
    }
    offer_changes = {k: v for k, v in offer_changes.items() if v is not None}
    if offer_changes:
        try:
            session.update_offer(**offer_changes)
        except ValueError as e:
            raise click.BadParameter(str(e))

    if save_dir:
        path = save_simulation(session.snapshot(), Path(save_dir))
        console.print(f"[green]Saved simulation to {path}[/green]")

    result = session.comparison()
    if result is None:
        console.print("[yellow]No consumption data - nothing to compare[/yellow]")
        return

    if as_json:
        click.echo(json.dumps(asdict(result), indent=2))
    else:
        supplier_label = session.offer.supplier_name or "New offer"
        console.print(comparison_table(session.current_cost(), result, supplier_label))
        if result.is_cheaper:
            console.print(f"[green]{supplier_label} saves {fmt(result.difference)} EUR this period[/green]")
        else:
            console.print(f"[red]{supplier_label} costs {fmt(-result.difference)} EUR more this period[/red]")
        if result.yearly_savings is not None:
            console.print(f"Estimated annual savings: {fmt(result.yearly_savings)} EUR")

    if report_dir:
        directory = Path(report_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / report_filename(session.offer)
        path.write_text(format_comparison_report(session.bill, session.offer, result), encoding="utf-8")
        console.print(f"[green]Report written to {path}[/green]")


@cli.command()
@click.argument("simulations", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@bill_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--text", "as_text", is_flag=True, help="Output as a plain-text report")
@click.pass_context
def rank(ctx, simulations, bill_path, as_json, as_text, **overrides):
    """Rank saved offers against the current bill, cheapest first."""
    session = build_session(ctx, bill_path, overrides)

    errors = session.add_simulation_files(Path(p) for p in simulations)
    for path, message in errors.items():
        console.print(f"[yellow]Skipped {path}: {message}[/yellow]")

    results = session.ranking()
    if not results:
        console.print("[yellow]Nothing to rank (no consumption data or no valid offers)[/yellow]")
        return

    current_total = session.current_cost().total
    if as_text:
        click.echo(format_ranking_report(results, current_total), nl=False)
        return

    if as_json:
        data = {
            "current_total": current_total,
            "offers": [
                {
                    "supplier": r.simulation.new_offer.supplier_name,
                    "original_index": r.original_index,
                    "calculated_total": r.calculated_total,
                    "yearly_savings": r.yearly_savings,
                    "is_cheaper": r.is_cheaper,
                    "energy_cost": r.breakdown.energy.total,
                    "power_cost": r.breakdown.power.total,
                    "taxes_cost": r.breakdown.taxes.total,
                }
                for r in results
            ],
        }
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(title=f"Offer ranking (current bill: {fmt(current_total)} EUR)")
    table.add_column("#", justify="right")
    table.add_column("Supplier", style="cyan")
    table.add_column("Power", justify="right")
    table.add_column("Energy", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Annual savings", justify="right")

    for position, r in enumerate(results, 1):
        offer = r.simulation.new_offer
        savings = fmt(r.yearly_savings) if r.yearly_savings is not None else "N/A"
        style = "green" if r.is_cheaper else "red"
        table.add_row(
            str(position),
            r.simulation.supplier_label,
            f"{offer.power_price_per_day:g}",
            f"{offer.energy_price_per_kwh:g}",
            fmt(r.calculated_total),
            f"[{style}]{savings}[/{style}]",
        )

    console.print(table)


@cli.command()
@click.pass_context
def rules(ctx):
    """Show the VAT rules in effect."""
    for line in describe_rules(ctx.obj["rules"]):
        console.print(f"- {line}")


if __name__ == "__main__":
    cli()
