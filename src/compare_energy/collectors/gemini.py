"""Bill extraction through the Google Gemini API.

Sends a bill (PDF or image) to Gemini's generateContent endpoint with a JSON
response schema and maps the answer onto a BillData.
"""

import base64
import json
import math
from typing import Any

import httpx

from ..config import get_api_key, get_model
from ..log import get_logger
from ..models import BillData

logger = get_logger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
REQUEST_TIMEOUT = 120.0
DEFAULT_BILLING_DAYS = 30

EXTRACTION_PROMPT = """
Analyse this Portuguese electricity bill. Extract the following values as JSON:

1. Total consumption in kWh for the period (sum of off-peak, peak and mid-peak
   if the bill is bi- or tri-hourly).
2. Contracted power (kVA).
3. Audiovisual contribution (CAV) amount.
4. DGEG exploration tax amount.
5. Special consumption tax (IEC or IECE) amount.
6. Social tariff amount. Return it as a negative number if present, 0 otherwise.
7. Total amount due on the bill.
8. Number of days in the billing period (assume 30 if not found).
9. Current power unit price (EUR/day). If a commercial discount applies to
   power, return the NET unit price (base price minus discount).
10. Current energy unit price (EUR/kWh). If a discount applies to energy,
    return the net price per kWh. For bi- or tri-hourly bills return the
    consumption-weighted average of the net prices.

If a tax is not shown on the bill, return 0.
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "monthlyConsumptionKwh": {"type": "NUMBER", "description": "Total consumption in kWh"},
        "contractedPowerKva": {"type": "NUMBER", "description": "Contracted power in kVA (e.g. 3.45, 6.9)"},
        "audiovisualTax": {"type": "NUMBER", "description": "Audiovisual contribution (CAV) in EUR"},
        "dgegTax": {"type": "NUMBER", "description": "DGEG exploration tax in EUR"},
        "ieceTax": {"type": "NUMBER", "description": "Special consumption tax (IEC) in EUR"},
        "socialTariff": {"type": "NUMBER", "description": "Social tariff discount in EUR (negative)"},
        "totalAmount": {"type": "NUMBER", "description": "Total bill amount in EUR"},
        "billingPeriodDays": {"type": "NUMBER", "description": "Number of billing days"},
        "currentPowerPricePerDay": {
            "type": "NUMBER",
            "description": "Current effective price per day for power (after discounts)",
        },
        "currentEnergyPricePerKwh": {
            "type": "NUMBER",
            "description": "Current effective price per kWh for energy (after discounts)",
        },
    },
    "required": ["monthlyConsumptionKwh", "contractedPowerKva", "totalAmount"],
}

REQUIRED_FIELDS = ("monthlyConsumptionKwh", "contractedPowerKva", "totalAmount")
OPTIONAL_TAX_FIELDS = ("audiovisualTax", "dgegTax", "ieceTax", "socialTariff")


class ExtractionError(Exception):
    """The extraction service returned no data or malformed data."""
    pass


def _number(data: dict[str, Any], key: str, default: float | None = None) -> float | None:
    value = data.get(key)
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ExtractionError(f"Field {key} is not a number: {value!r}")
    if not math.isfinite(number):
        raise ExtractionError(f"Field {key} is not a finite number: {value!r}")
    return number


def parse_extracted_fields(data: dict[str, Any]) -> BillData:
    """Map the extraction response onto a BillData.

    Raises ExtractionError if a required field is missing or a value is
    malformed. Missing taxes default to 0 and a missing period to 30 days.
    """
    if not isinstance(data, dict):
        raise ExtractionError(f"Expected a JSON object, got {type(data).__name__}")

    missing = [key for key in REQUIRED_FIELDS if data.get(key) is None]
    if missing:
        raise ExtractionError(f"Missing required fields: {', '.join(missing)}")

    days = _number(data, "billingPeriodDays", DEFAULT_BILLING_DAYS)
    if not days or days <= 0:
        days = DEFAULT_BILLING_DAYS

    social = _number(data, "socialTariff", 0.0)
    bill = BillData(
        consumption_kwh=_number(data, "monthlyConsumptionKwh"),
        contracted_power_kva=_number(data, "contractedPowerKva"),
        audiovisual_tax=_number(data, "audiovisualTax", 0.0),
        dgeg_tax=_number(data, "dgegTax", 0.0),
        iec_tax=_number(data, "ieceTax", 0.0),
        # The social tariff is a credit even when reported as a positive amount
        social_tariff=-abs(social),
        total_amount=_number(data, "totalAmount"),
        billing_period_days=days,
        current_power_price_per_day=_number(data, "currentPowerPricePerDay"),
        current_energy_price_per_kwh=_number(data, "currentEnergyPricePerKwh"),
    )

    try:
        bill.validate()
    except ValueError as e:
        raise ExtractionError(f"Malformed bill data: {e}")

    return bill


def build_request(content: bytes, mime_type: str) -> dict[str, Any]:
    """Build the generateContent request body."""
    return {
        "contents": [
            {
                "parts": [
                    {
                        "inline_data": {
                            "mime_type": mime_type,
                            "data": base64.b64encode(content).decode("ascii"),
                        }
                    },
                    {"text": EXTRACTION_PROMPT},
                ]
            }
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def response_text(payload: dict[str, Any]) -> str:
    """Pull the generated text out of a generateContent response."""
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        raise ExtractionError("No data returned from Gemini")

    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise ExtractionError("No data returned from Gemini")
    return text


def extract_bill_data(
    content: bytes,
    mime_type: str,
    api_key: str | None = None,
    model: str | None = None,
    client: httpx.Client | None = None,
) -> BillData:
    """Extract bill fields from a PDF or image.

    Args:
        content: Raw file bytes
        mime_type: MIME type of the file (application/pdf or image/*)
        api_key: Gemini API key (defaults to GEMINI_API_KEY env var)
        model: Gemini model name (defaults to GEMINI_MODEL env var)
        client: httpx client to use; a new one is created if omitted

    Returns:
        BillData built from the fields found on the bill

    Raises:
        ExtractionError: the request failed or the answer was unusable.
            There is no retry.
    """
    if api_key is None:
        api_key = get_api_key()
    if model is None:
        model = get_model()

    url = f"{GEMINI_API_BASE}/models/{model}:generateContent"
    logger.info("Extracting bill data with %s (%s, %d bytes)", model, mime_type, len(content))

    own_client = client is None
    if own_client:
        client = httpx.Client(timeout=REQUEST_TIMEOUT)

    try:
        response = client.post(
            url,
            headers={"x-goog-api-key": api_key},
            json=build_request(content, mime_type),
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        raise ExtractionError(f"Gemini API error: {e.response.status_code} - {e.response.text[:200]}")
    except httpx.HTTPError as e:
        raise ExtractionError(f"Could not reach Gemini: {e}")
    except ValueError:
        raise ExtractionError("Gemini returned a non-JSON response")
    finally:
        if own_client:
            client.close()

    text = response_text(payload)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        raise ExtractionError(f"Gemini returned malformed JSON: {text[:200]}")

    bill = parse_extracted_fields(data)
    logger.info(
        "Extracted bill: %.0f kWh, %.2f kVA, %g days",
        bill.consumption_kwh,
        bill.contracted_power_kva,
        bill.billing_period_days,
    )
    return bill
