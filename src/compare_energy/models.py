"""Data models for bills, offers, saved simulations and cost results."""

import math
from dataclasses import dataclass, field
from enum import Enum


class AnalysisStatus(Enum):
    """State of the current bill upload/analysis."""

    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


@dataclass(frozen=True)
class TaxComponents:
    """Fixed taxes charged on a bill, in EUR."""

    cav: float = 0.0  # Audiovisual contribution
    dgeg: float = 0.0  # DGEG exploration tax
    iec: float = 0.0  # Excise tax
    social: float = 0.0  # Social tariff, <= 0 when a credit applies


@dataclass
class BillData:
    """Fields read from (or typed in for) the customer's current bill."""

    consumption_kwh: float = 0.0
    contracted_power_kva: float = 0.0
    audiovisual_tax: float = 0.0
    dgeg_tax: float = 0.0
    iec_tax: float = 0.0
    social_tariff: float = 0.0
    total_amount: float = 0.0  # As stated on the bill, informational only
    billing_period_days: float = 30
    current_power_price_per_day: float | None = None  # EUR/day
    current_energy_price_per_kwh: float | None = None  # EUR/kWh

    @property
    def taxes(self) -> TaxComponents:
        return TaxComponents(
            cav=self.audiovisual_tax,
            dgeg=self.dgeg_tax,
            iec=self.iec_tax,
            social=self.social_tariff,
        )

    def validate(self) -> None:
        """Raise ValueError if a field is not a finite number, or is negative.

        The social tariff is a credit and may be negative.
        """
        if not math.isfinite(self.social_tariff):
            raise ValueError(f"social_tariff must be a finite number, got {self.social_tariff}")
        for name in (
            "consumption_kwh",
            "contracted_power_kva",
            "audiovisual_tax",
            "dgeg_tax",
            "iec_tax",
            "total_amount",
            "billing_period_days",
            "current_power_price_per_day",
            "current_energy_price_per_kwh",
        ):
            value = getattr(self, name)
            if value is None:
                continue
            if not math.isfinite(value):
                raise ValueError(f"{name} must be a finite number, got {value}")
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")


@dataclass
class OfferData:
    """Unit prices (before VAT) proposed by a supplier."""

    supplier_name: str | None = None
    power_price_per_day: float = 0.0  # EUR/day
    energy_price_per_kwh: float = 0.0  # EUR/kWh

    def validate(self) -> None:
        for name in ("power_price_per_day", "energy_price_per_kwh"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be a finite number, got {value}")
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")


def new_bill_data() -> BillData:
    """Return a fresh zero-valued bill."""
    return BillData()


def new_offer_data() -> OfferData:
    """Return a fresh empty offer."""
    return OfferData(supplier_name="")


@dataclass(frozen=True)
class SavedSimulation:
    """A portable snapshot of a bill and an offer."""

    version: str
    timestamp: str  # ISO-8601
    bill_data: BillData | None
    new_offer: OfferData

    @property
    def supplier_label(self) -> str:
        return self.new_offer.supplier_name or "Unnamed offer"


@dataclass(frozen=True)
class CostComponent:
    """Base cost, VAT and VAT-inclusive total for one cost category."""

    base: float
    tax: float
    total: float

    @classmethod
    def from_parts(cls, base: float, tax: float) -> "CostComponent":
        return cls(base=base, tax=tax, total=base + tax)


@dataclass(frozen=True)
class CostBreakdown:
    """Tax-inclusive cost of one tariff over one billing period."""

    base: float
    tax: float
    total: float
    energy: CostComponent
    power: CostComponent
    taxes: CostComponent


@dataclass(frozen=True)
class ComparisonResult:
    """Current tariff versus a new offer, for the same billing period."""

    current_total: float
    new_total: float
    current_base: float  # Without VAT
    new_base: float  # Without VAT
    difference: float  # Positive when the new offer is cheaper
    is_cheaper: bool
    yearly_savings: float | None  # None when the period length is unusable
    energy_cost: tuple[float, float]  # (current, new), VAT included
    power_cost: tuple[float, float]
    taxes_cost: tuple[float, float]


@dataclass(frozen=True)
class RankedResult:
    """A saved offer costed against the current bill."""

    simulation: SavedSimulation
    original_index: int
    calculated_total: float
    yearly_savings: float | None
    is_cheaper: bool
    breakdown: CostBreakdown = field(compare=False)  # VAT-inclusive cost per category
