"""Saved simulations: JSON documents holding a bill and an offer.

Document format:
    {
      "version": "1.0",
      "timestamp": "2026-01-29T10:00:00.000Z",
      "billData": {"monthlyConsumptionKwh": ..., ...},
      "newOffer": {"supplierName": ..., "powerPricePerDay": ..., "energyPricePerKwh": ...}
    }
"""

import asyncio
import json
import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

from .log import get_logger
from .models import BillData, OfferData, SavedSimulation

logger = get_logger(__name__)

SIMULATION_FORMAT_VERSION = "1.0"

# Document key -> BillData attribute
BILL_FIELDS = {
    "monthlyConsumptionKwh": "consumption_kwh",
    "contractedPowerKva": "contracted_power_kva",
    "audiovisualTax": "audiovisual_tax",
    "dgegTax": "dgeg_tax",
    "ieceTax": "iec_tax",
    "socialTariff": "social_tariff",
    "totalAmount": "total_amount",
    "billingPeriodDays": "billing_period_days",
}
OPTIONAL_BILL_FIELDS = {
    "currentPowerPricePerDay": "current_power_price_per_day",
    "currentEnergyPricePerKwh": "current_energy_price_per_kwh",
}
OFFER_FIELDS = {
    "powerPricePerDay": "power_price_per_day",
    "energyPricePerKwh": "energy_price_per_kwh",
}


class MalformedDocumentError(Exception):
    """A simulation document is missing required fields or has invalid values."""
    pass


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_simulation(bill: BillData, offer: OfferData, now: datetime | None = None) -> SavedSimulation:
    """Snapshot the current bill and offer.

    Copies are taken so later edits to the session don't leak into the snapshot.
    """
    return SavedSimulation(
        version=SIMULATION_FORMAT_VERSION,
        timestamp=utc_timestamp(now),
        bill_data=replace(bill),
        new_offer=replace(offer),
    )


def _number(section: dict, key: str, where: str) -> float:
    value = section[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedDocumentError(f"{where}.{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise MalformedDocumentError(f"{where}.{key} must be a finite number, got {value!r}")
    return value


def _section(data: dict, key: str) -> dict:
    section = data.get(key)
    if not isinstance(section, dict):
        raise MalformedDocumentError(f"Missing or invalid '{key}' section")
    return section


def bill_from_document(section: dict) -> BillData:
    missing = [key for key in BILL_FIELDS if key not in section]
    if missing:
        raise MalformedDocumentError(f"billData is missing fields: {', '.join(missing)}")

    values = {attr: _number(section, key, "billData") for key, attr in BILL_FIELDS.items()}
    for key, attr in OPTIONAL_BILL_FIELDS.items():
        if section.get(key) is not None:
            values[attr] = _number(section, key, "billData")

    bill = BillData(**values)
    try:
        bill.validate()
    except ValueError as e:
        raise MalformedDocumentError(f"Invalid billData: {e}")
    if bill.billing_period_days == 0:
        raise MalformedDocumentError("Invalid billData: billingPeriodDays must be > 0")
    return bill


def offer_from_document(section: dict) -> OfferData:
    missing = [key for key in OFFER_FIELDS if key not in section]
    if missing:
        raise MalformedDocumentError(f"newOffer is missing fields: {', '.join(missing)}")

    supplier = section.get("supplierName")
    if supplier is not None and not isinstance(supplier, str):
        raise MalformedDocumentError(f"newOffer.supplierName must be text, got {supplier!r}")

    offer = OfferData(
        supplier_name=supplier,
        **{attr: _number(section, key, "newOffer") for key, attr in OFFER_FIELDS.items()},
    )
    try:
        offer.validate()
    except ValueError as e:
        raise MalformedDocumentError(f"Invalid newOffer: {e}")
    return offer


def from_document(data: Any, require_bill: bool = True) -> SavedSimulation:
    """Build a SavedSimulation from a parsed JSON document.

    With require_bill=False (used when loading offers for ranking) only
    newOffer is mandatory: a missing version or timestamp is filled in, and
    a missing, null or invalid billData is dropped.
    """
    if not isinstance(data, dict):
        raise MalformedDocumentError("Simulation document must be a JSON object")

    offer = offer_from_document(_section(data, "newOffer"))

    if require_bill:
        bill = bill_from_document(_section(data, "billData"))
    else:
        try:
            bill = bill_from_document(_section(data, "billData"))
        except MalformedDocumentError as e:
            if data.get("billData") is not None:
                logger.info("Ignoring unusable billData: %s", e)
            bill = None

    version = data.get("version")
    timestamp = data.get("timestamp")
    if require_bill:
        if not isinstance(version, str):
            raise MalformedDocumentError("Missing or invalid 'version'")
        if not isinstance(timestamp, str):
            raise MalformedDocumentError("Missing or invalid 'timestamp'")
    else:
        version = version if isinstance(version, str) else SIMULATION_FORMAT_VERSION
        timestamp = timestamp if isinstance(timestamp, str) else utc_timestamp()

    return SavedSimulation(version=version, timestamp=timestamp, bill_data=bill, new_offer=offer)


def bill_to_document(bill: BillData) -> dict:
    section = {key: getattr(bill, attr) for key, attr in BILL_FIELDS.items()}
    for key, attr in OPTIONAL_BILL_FIELDS.items():
        value = getattr(bill, attr)
        if value is not None:
            section[key] = value
    return section


def offer_to_document(offer: OfferData) -> dict:
    section = {}
    if offer.supplier_name is not None:
        section["supplierName"] = offer.supplier_name
    for key, attr in OFFER_FIELDS.items():
        section[key] = getattr(offer, attr)
    return section


def to_document(sim: SavedSimulation) -> dict:
    """Convert a SavedSimulation to its JSON document form."""
    data = {"version": sim.version, "timestamp": sim.timestamp}
    if sim.bill_data is not None:
        data["billData"] = bill_to_document(sim.bill_data)
    data["newOffer"] = offer_to_document(sim.new_offer)
    return data


def dumps(sim: SavedSimulation) -> str:
    return json.dumps(to_document(sim), indent=2, ensure_ascii=False)


def loads(text: str | bytes, require_bill: bool = True) -> SavedSimulation:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise MalformedDocumentError("The JSON file is not a valid simulation")
    return from_document(data, require_bill=require_bill)


def filename_slug(name: str | None, fallback: str) -> str:
    return re.sub(r"\s+", "_", name.strip()) if name and name.strip() else fallback


def file_timestamp(now: datetime | None = None) -> str:
    """Timestamp used in exported file names (YYYY-MM-DD_HH_MM, UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d_%H_%M")


def simulation_filename(offer: OfferData, now: datetime | None = None) -> str:
    return f"Comparison_{filename_slug(offer.supplier_name, 'Simulation')}_{file_timestamp(now)}.json"


def save_simulation(sim: SavedSimulation, directory: Path, now: datetime | None = None) -> Path:
    """Write a simulation to a JSON file in directory. Returns the file path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / simulation_filename(sim.new_offer, now)
    path.write_text(dumps(sim), encoding="utf-8")
    logger.info("Saved simulation to %s", path)
    return path


def load_simulation(path: Path, require_bill: bool = True) -> SavedSimulation:
    """Read a simulation document from a file."""
    return loads(path.read_bytes(), require_bill=require_bill)


@dataclass
class BatchLoadResult:
    """Simulations read from several files, plus the files that failed."""

    simulations: list[SavedSimulation] = field(default_factory=list)
    errors: dict[Path, str] = field(default_factory=dict)


async def _load_one(path: Path) -> SavedSimulation:
    text = await asyncio.to_thread(path.read_bytes)
    return loads(text, require_bill=False)


async def load_simulations(paths: Iterable[Path]) -> BatchLoadResult:
    """Read many simulation files concurrently.

    Each file is read independently; results are only assembled once every
    read has finished. Files that can't be read or parsed are reported in
    errors and skipped. Order follows the input paths.
    """
    paths = list(paths)
    outcomes = await asyncio.gather(*(_load_one(p) for p in paths), return_exceptions=True)

    result = BatchLoadResult()
    for path, outcome in zip(paths, outcomes):
        if isinstance(outcome, (MalformedDocumentError, OSError)):
            logger.warning("Skipping %s: %s", path, outcome)
            result.errors[path] = str(outcome)
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.simulations.append(outcome)
    return result


class SimulationCollection:
    """Saved offers loaded for ranking.

    Updates replace the underlying list in one step, so readers never see a
    partially applied batch.
    """

    def __init__(self, simulations: Iterable[SavedSimulation] = ()):
        self._items: tuple[SavedSimulation, ...] = tuple(simulations)

    def extend(self, simulations: Iterable[SavedSimulation]) -> None:
        self._items = self._items + tuple(simulations)

    def remove(self, index: int) -> SavedSimulation:
        """Remove the simulation at its original (insertion) index."""
        if not 0 <= index < len(self._items):
            raise IndexError(f"No simulation at index {index}")
        removed = self._items[index]
        self._items = self._items[:index] + self._items[index + 1:]
        return removed

    def clear(self) -> None:
        self._items = ()

    def to_list(self) -> list[SavedSimulation]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[SavedSimulation]:
        return iter(self._items)

    def __getitem__(self, index: int) -> SavedSimulation:
        return self._items[index]
