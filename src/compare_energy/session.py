"""State for one comparison session: current bill, active offer and saved offers."""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable

from .analysis.comparison import compare, current_cost, rank_offers
from .collectors.gemini import ExtractionError, extract_bill_data
from .collectors.uploads import ValidationError, guess_mime_type, is_json, validate_upload
from .log import get_logger
from .models import (
    AnalysisStatus,
    BillData,
    ComparisonResult,
    CostBreakdown,
    RankedResult,
    SavedSimulation,
    new_bill_data,
    new_offer_data,
)
from .simulations import (
    MalformedDocumentError,
    SimulationCollection,
    create_simulation,
    load_simulations,
    loads,
)
from .tariffs import DEFAULT_VAT_RULES, VatRules

logger = get_logger(__name__)

Extractor = Callable[[bytes, str], BillData]


class ComparisonSession:
    """Holds the bill and offers being compared.

    Calculations are never cached: comparison() and ranking() recompute from
    the current values on every call. Failed uploads leave the bill and offer
    untouched and record the failure in status/error_message.
    """

    def __init__(self, rules: VatRules = DEFAULT_VAT_RULES, extractor: Extractor | None = None):
        self.rules = rules
        self.extractor = extractor or extract_bill_data
        self.bill = new_bill_data()
        self.offer = new_offer_data()
        self.simulations = SimulationCollection()
        self.status = AnalysisStatus.IDLE
        self.error_message: str | None = None

    def reset(self) -> None:
        """Start a new simulation from scratch."""
        self.bill = new_bill_data()
        self.offer = new_offer_data()
        self.simulations = SimulationCollection()
        self.status = AnalysisStatus.IDLE
        self.error_message = None

    def clear_file(self) -> None:
        """Drop the bill but keep the offer, to try it against another bill."""
        self.bill = new_bill_data()
        self.status = AnalysisStatus.IDLE
        self.error_message = None

    def _fail(self, message: str) -> None:
        logger.warning("Upload failed: %s", message)
        self.status = AnalysisStatus.ERROR
        self.error_message = message

    def handle_file(self, filename: str, content: bytes, mime_type: str | None) -> bool:
        """Process an uploaded bill or saved simulation.

        A JSON file is imported as a saved simulation (bill and offer);
        anything else goes through bill extraction. Returns True on success.
        Errors are reported through status and error_message, never raised.
        """
        self.error_message = None
        try:
            mime_type = validate_upload(filename, content, mime_type)
        except ValidationError as e:
            # Rejected files don't change the session state
            self.error_message = str(e)
            return False

        self.status = AnalysisStatus.ANALYZING
        try:
            if is_json(mime_type, content):
                sim = loads(content)
                bill, offer = sim.bill_data, sim.new_offer
            else:
                bill, offer = self.extractor(content, mime_type), None
        except MalformedDocumentError as e:
            self._fail(f"The JSON file is not a valid simulation: {e}")
            return False
        except ExtractionError as e:
            self._fail(str(e))
            return False
        except ValueError as e:
            # Configuration problems, e.g. a missing API key
            self._fail(str(e))
            return False

        self.bill = bill
        if offer is not None:
            self.offer = offer
        self.status = AnalysisStatus.SUCCESS
        logger.info("Loaded %s", filename)
        return True

    def load_path(self, path: Path, mime_type: str | None = None) -> bool:
        """Read a file from disk and process it like an upload."""
        try:
            content = path.read_bytes()
        except OSError as e:
            self._fail(f"Could not read {path}: {e}")
            return False
        return self.handle_file(path.name, content, mime_type or guess_mime_type(path))

    def update_bill(self, **changes) -> None:
        """Replace the bill with a copy carrying the given field changes."""
        bill = replace(self.bill, **changes)
        bill.validate()
        self.bill = bill

    def update_offer(self, **changes) -> None:
        offer = replace(self.offer, **changes)
        offer.validate()
        self.offer = offer

    def add_simulations(self, simulations: Iterable[SavedSimulation]) -> None:
        self.simulations.extend(simulations)

    def add_simulation_files(self, paths: Iterable[Path]) -> dict[Path, str]:
        """Load saved simulations for ranking.

        All files are read before the collection is updated, in one step.
        Returns the files that could not be loaded, with the reason.
        """
        result = asyncio.run(load_simulations(paths))
        self.simulations.extend(result.simulations)
        logger.info(
            "Added %d simulation(s), %d failed", len(result.simulations), len(result.errors)
        )
        return result.errors

    def remove_simulation(self, index: int) -> SavedSimulation:
        return self.simulations.remove(index)

    def load_simulation_to_main(self, sim: SavedSimulation) -> None:
        """Make a saved offer the active offer."""
        self.offer = replace(sim.new_offer)

    def snapshot(self) -> SavedSimulation:
        return create_simulation(self.bill, self.offer)

    def current_cost(self) -> CostBreakdown:
        return current_cost(self.bill, self.rules)

    def comparison(self) -> ComparisonResult | None:
        return compare(self.bill, self.offer, self.rules)

    def ranking(self) -> list[RankedResult]:
        return rank_offers(self.bill, self.simulations.to_list(), self.rules)
