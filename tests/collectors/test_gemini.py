"""Tests for the Gemini bill extractor."""

import base64
import json

import httpx
import pytest
from compare_energy.collectors import gemini

BILL_FIELDS = {
    "monthlyConsumptionKwh": 245,
    "contractedPowerKva": 6.9,
    "audiovisualTax": 2.85,
    "dgegTax": 0.07,
    "ieceTax": 0.24,
    "socialTariff": 0,
    "totalAmount": 61.34,
    "billingPeriodDays": 31,
    "currentPowerPricePerDay": 0.3327,
    "currentEnergyPricePerKwh": 0.1658,
}


def gemini_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


def make_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_extract_bill_data_success():
    """Test a successful extraction and the request sent to Gemini."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_response(json.dumps(BILL_FIELDS)))

    with make_client(handler) as client:
        bill = gemini.extract_bill_data(
            b"%PDF-1.4 fake", "application/pdf", api_key="test-key", model="gemini-test", client=client
        )

    assert seen["url"].endswith("/models/gemini-test:generateContent")
    assert seen["key"] == "test-key"
    inline = seen["body"]["contents"][0]["parts"][0]["inline_data"]
    assert inline["mime_type"] == "application/pdf"
    assert base64.b64decode(inline["data"]) == b"%PDF-1.4 fake"
    assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"

    assert bill.consumption_kwh == 245
    assert bill.contracted_power_kva == 6.9
    assert bill.audiovisual_tax == 2.85
    assert bill.billing_period_days == 31
    assert bill.current_energy_price_per_kwh == 0.1658


def test_extract_bill_data_http_error():
    """Test handling of HTTP errors."""
    with make_client(lambda request: httpx.Response(403, text="API key not valid")) as client:
        with pytest.raises(gemini.ExtractionError, match="403"):
            gemini.extract_bill_data(b"img", "image/png", api_key="bad", model="m", client=client)


def test_extract_bill_data_network_error():
    """Test handling of network errors."""

    def handler(request):
        raise httpx.ConnectError("Network error", request=request)

    with make_client(handler) as client:
        with pytest.raises(gemini.ExtractionError, match="Could not reach Gemini"):
            gemini.extract_bill_data(b"img", "image/png", api_key="k", model="m", client=client)


def test_extract_bill_data_empty_response():
    with make_client(lambda request: httpx.Response(200, json={"candidates": []})) as client:
        with pytest.raises(gemini.ExtractionError, match="No data"):
            gemini.extract_bill_data(b"img", "image/png", api_key="k", model="m", client=client)


def test_extract_bill_data_malformed_json_text():
    with make_client(lambda request: httpx.Response(200, json=gemini_response("not json"))) as client:
        with pytest.raises(gemini.ExtractionError, match="malformed JSON"):
            gemini.extract_bill_data(b"img", "image/png", api_key="k", model="m", client=client)


def test_extract_bill_data_requires_api_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="GEMINI_API_KEY"):
        gemini.extract_bill_data(b"img", "image/png")


def test_parse_defaults_for_optional_fields():
    bill = gemini.parse_extracted_fields(
        {"monthlyConsumptionKwh": 150, "contractedPowerKva": 3.45, "totalAmount": 40.1}
    )

    assert bill.audiovisual_tax == 0
    assert bill.dgeg_tax == 0
    assert bill.iec_tax == 0
    assert bill.social_tariff == 0
    assert bill.billing_period_days == 30
    assert bill.current_power_price_per_day is None
    assert bill.current_energy_price_per_kwh is None


def test_parse_missing_required_fields():
    with pytest.raises(gemini.ExtractionError, match="contractedPowerKva, totalAmount"):
        gemini.parse_extracted_fields({"monthlyConsumptionKwh": 150})


def test_parse_social_tariff_is_a_credit():
    data = dict(BILL_FIELDS, socialTariff=11.5)

    assert gemini.parse_extracted_fields(data).social_tariff == -11.5


def test_parse_rejects_negative_values():
    with pytest.raises(gemini.ExtractionError, match="consumption_kwh"):
        gemini.parse_extracted_fields(dict(BILL_FIELDS, monthlyConsumptionKwh=-10))


def test_parse_rejects_non_numeric_values():
    with pytest.raises(gemini.ExtractionError, match="totalAmount"):
        gemini.parse_extracted_fields(dict(BILL_FIELDS, totalAmount="sixty"))


@pytest.mark.parametrize("value", [float("nan"), float("inf"), "NaN", "-Infinity"])
def test_parse_rejects_non_finite_values(value):
    with pytest.raises(gemini.ExtractionError, match="currentEnergyPricePerKwh"):
        gemini.parse_extracted_fields(dict(BILL_FIELDS, currentEnergyPricePerKwh=value))


def test_extract_bill_data_rejects_nan_in_response():
    text = json.dumps(BILL_FIELDS).replace("245", "NaN")

    with make_client(lambda request: httpx.Response(200, json=gemini_response(text))) as client:
        with pytest.raises(gemini.ExtractionError, match="finite"):
            gemini.extract_bill_data(b"img", "image/png", api_key="k", model="m", client=client)
