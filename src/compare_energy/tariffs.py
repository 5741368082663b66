"""VAT rules and tariff cost calculation."""

from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from .models import CostBreakdown, CostComponent, TaxComponents

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "vat_rules.yaml"

# VAT rates
LOW_RATE = 0.06
STANDARD_RATE = 0.23

# Contracted power up to this value gets the low rate on power and on the first energy tier
LOW_POWER_THRESHOLD_KVA = 6.9
LOW_RATE_TIER_KWH = 100  # kWh per billing period

# TODO: confirm the social tariff VAT exemption against the current tax code
SOCIAL_TARIFF_VAT_RATE = 0.0


@dataclass(frozen=True)
class VatRules:
    """VAT rates and brackets applied to an electricity bill."""

    low_rate: float = LOW_RATE
    standard_rate: float = STANDARD_RATE
    low_power_threshold_kva: float = LOW_POWER_THRESHOLD_KVA
    low_rate_tier_kwh: float = LOW_RATE_TIER_KWH
    social_tariff_rate: float = SOCIAL_TARIFF_VAT_RATE

    def is_low_power(self, contracted_power_kva: float) -> bool:
        return contracted_power_kva <= self.low_power_threshold_kva


DEFAULT_VAT_RULES = VatRules()


def load_vat_rules(config_path: Path | None = None) -> VatRules:
    """Load VAT rules from a YAML file.

    Keys missing from the file keep their default values. Unknown keys
    are rejected so typos don't silently fall back to defaults.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    section = data.get("vat", data)
    known = {f.name for f in fields(VatRules)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown VAT rule keys in {path}: {', '.join(sorted(unknown))}")

    return replace(DEFAULT_VAT_RULES, **{k: float(v) for k, v in section.items()})


def energy_vat(
    consumption_kwh: float,
    energy_price_per_kwh: float,
    contracted_power_kva: float,
    rules: VatRules = DEFAULT_VAT_RULES,
) -> float:
    """VAT on the energy term.

    In the low-power bracket the first tier of consumption is taxed at the
    low rate and the remainder at the standard rate. Both tiers use the same
    unit price.
    """
    if not rules.is_low_power(contracted_power_kva):
        return consumption_kwh * energy_price_per_kwh * rules.standard_rate

    tier1_kwh = min(consumption_kwh, rules.low_rate_tier_kwh)
    tier2_kwh = max(0.0, consumption_kwh - rules.low_rate_tier_kwh)
    return (
        tier1_kwh * energy_price_per_kwh * rules.low_rate
        + tier2_kwh * energy_price_per_kwh * rules.standard_rate
    )


def compute_cost(
    consumption_kwh: float,
    contracted_power_kva: float,
    billing_days: float,
    power_price_per_day: float,
    energy_price_per_kwh: float,
    taxes: TaxComponents,
    rules: VatRules = DEFAULT_VAT_RULES,
) -> CostBreakdown:
    """Calculate the VAT-inclusive cost of a tariff for one billing period.

    Args:
        consumption_kwh: Energy used in the period
        contracted_power_kva: Contracted power, selects the VAT bracket
        billing_days: Length of the billing period
        power_price_per_day: Power term unit price before VAT (EUR/day)
        energy_price_per_kwh: Energy unit price before VAT (EUR/kWh)
        taxes: Fixed taxes for the period
        rules: VAT rates and brackets

    Returns:
        CostBreakdown with energy, power and taxes sub-totals. No rounding is
        applied; every total is exactly base + tax.
    """
    power_base = billing_days * power_price_per_day
    power_rate = rules.low_rate if rules.is_low_power(contracted_power_kva) else rules.standard_rate
    power = CostComponent.from_parts(power_base, power_base * power_rate)

    energy_base = consumption_kwh * energy_price_per_kwh
    energy = CostComponent.from_parts(
        energy_base,
        energy_vat(consumption_kwh, energy_price_per_kwh, contracted_power_kva, rules),
    )

    # CAV at the low rate, DGEG and IEC at the standard rate
    taxes_base = taxes.cav + taxes.dgeg + taxes.iec + taxes.social
    taxes_vat = (
        taxes.cav * rules.low_rate
        + taxes.dgeg * rules.standard_rate
        + taxes.iec * rules.standard_rate
        + taxes.social * rules.social_tariff_rate
    )
    tax_component = CostComponent.from_parts(taxes_base, taxes_vat)

    base = power.base + energy.base + tax_component.base
    tax = power.tax + energy.tax + tax_component.tax
    return CostBreakdown(
        base=base,
        tax=tax,
        total=base + tax,
        energy=energy,
        power=power,
        taxes=tax_component,
    )


def describe_rules(rules: VatRules = DEFAULT_VAT_RULES) -> list[str]:
    """Human-readable description of the VAT rules."""
    return [
        f"Power up to {rules.low_power_threshold_kva} kVA: power term at {rules.low_rate:.0%}, "
        f"first {rules.low_rate_tier_kwh:g} kWh at {rules.low_rate:.0%}, remainder at {rules.standard_rate:.0%}",
        f"Power above {rules.low_power_threshold_kva} kVA: power and energy at {rules.standard_rate:.0%}",
        f"Audiovisual contribution at {rules.low_rate:.0%}, DGEG and IEC at {rules.standard_rate:.0%}",
        f"Social tariff at {rules.social_tariff_rate:.0%}",
    ]
