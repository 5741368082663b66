import json

import pytest
from click.testing import CliRunner
from compare_energy.cli import cli

BILL_ARGS = [
    "--consumption", "200",
    "--power", "4.6",
    "--days", "30",
    "--power-price", "0.2",
    "--energy-price", "0.22",
    "--cav", "1.5",
    "--dgeg", "0.1",
    "--iec", "6",
]

SIMULATION = {
    "version": "1.0",
    "timestamp": "2026-01-29T10:00:00.000Z",
    "billData": {
        "monthlyConsumptionKwh": 200,
        "contractedPowerKva": 4.6,
        "audiovisualTax": 1.5,
        "dgegTax": 0.1,
        "ieceTax": 6.0,
        "socialTariff": 0,
        "totalAmount": 60.0,
        "billingPeriodDays": 30,
        "currentPowerPricePerDay": 0.2,
        "currentEnergyPricePerKwh": 0.22,
    },
    "newOffer": {"supplierName": "Acme", "powerPricePerDay": 0.15, "energyPricePerKwh": 0.18},
}


@pytest.fixture
def runner():
    return CliRunner()


def write_offer(tmp_path, name, power, energy):
    path = tmp_path / f"{name}.json"
    path.write_text(json.dumps(dict(SIMULATION, newOffer={
        "supplierName": name, "powerPricePerDay": power, "energyPricePerKwh": energy,
    })))
    return path


def test_compare_json(runner):
    result = runner.invoke(
        cli, ["compare", *BILL_ARGS, "--offer-power-price", "0.15", "--offer-energy-price", "0.18", "--json"]
    )

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["is_cheaper"] is True
    assert data["difference"] == pytest.approx(data["current_total"] - data["new_total"])


def test_compare_without_consumption(runner):
    result = runner.invoke(cli, ["compare", "--offer-power-price", "0.15"])

    assert result.exit_code == 0
    assert "nothing to compare" in result.output


def test_compare_writes_report_and_simulation(runner, tmp_path):
    result = runner.invoke(cli, [
        "compare", *BILL_ARGS,
        "--supplier", "Acme Energia",
        "--offer-power-price", "0.15",
        "--offer-energy-price", "0.18",
        "--report", str(tmp_path / "reports"),
        "--save", str(tmp_path / "sims"),
    ])

    assert result.exit_code == 0, result.output
    reports = list((tmp_path / "reports").glob("Report_Acme_Energia_*.txt"))
    sims = list((tmp_path / "sims").glob("Comparison_Acme_Energia_*.json"))
    assert len(reports) == 1
    assert len(sims) == 1
    assert "RESULT: SAVING" in reports[0].read_text()
    saved = json.loads(sims[0].read_text())
    assert saved["billData"]["monthlyConsumptionKwh"] == 200
    assert saved["newOffer"]["supplierName"] == "Acme Energia"


def test_compare_loads_simulation_file(runner, tmp_path):
    path = tmp_path / "sim.json"
    path.write_text(json.dumps(SIMULATION))

    result = runner.invoke(cli, ["compare", "--bill", str(path)])

    assert result.exit_code == 0, result.output
    assert "Acme" in result.output


def test_compare_rejects_malformed_simulation(runner, tmp_path):
    path = tmp_path / "sim.json"
    path.write_text(json.dumps({"newOffer": SIMULATION["newOffer"]}))

    result = runner.invoke(cli, ["compare", "--bill", str(path)])

    assert result.exit_code != 0
    assert "not a valid simulation" in result.output


def test_compare_rejects_negative_input(runner):
    result = runner.invoke(cli, ["compare", "--consumption", "-5"])

    assert result.exit_code == 2


def test_rank_json(runner, tmp_path):
    files = [
        write_offer(tmp_path, "Pricey", 0.3, 0.3),
        write_offer(tmp_path, "Cheap", 0.1, 0.1),
        write_offer(tmp_path, "Middle", 0.15, 0.18),
    ]

    result = runner.invoke(cli, ["rank", *map(str, files), *BILL_ARGS, "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [o["supplier"] for o in data["offers"]] == ["Cheap", "Middle", "Pricey"]
    assert [o["original_index"] for o in data["offers"]] == [1, 2, 0]


def test_rank_text(runner, tmp_path):
    files = [write_offer(tmp_path, "Pricey", 0.3, 0.3), write_offer(tmp_path, "Cheap", 0.1, 0.1)]

    result = runner.invoke(cli, ["rank", *map(str, files), *BILL_ARGS, "--text"])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("OFFER RANKING")
    assert result.output.index("1. Cheap") < result.output.index("2. Pricey")


def test_rank_without_consumption(runner, tmp_path):
    result = runner.invoke(cli, ["rank", str(write_offer(tmp_path, "Cheap", 0.1, 0.1))])

    assert result.exit_code == 0
    assert "Nothing to rank" in result.output


def test_rules_with_override(runner, tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("vat:\n  standard_rate: 0.21\n")

    result = runner.invoke(cli, ["--vat-rules", str(path), "rules"])

    assert result.exit_code == 0, result.output
    assert "21%" in result.output


def test_extract_rejects_unsupported_file(runner, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello")

    result = runner.invoke(cli, ["extract", str(path)])

    assert result.exit_code == 1
    assert "Unsupported file type" in result.output


def test_rank_json_includes_cost_breakdown(runner, tmp_path):
    files = [write_offer(tmp_path, "Cheap", 0.1, 0.1)]

    result = runner.invoke(cli, ["rank", *map(str, files), *BILL_ARGS, "--json"])

    assert result.exit_code == 0, result.output
    offer = json.loads(result.output)["offers"][0]
    parts = offer["energy_cost"] + offer["power_cost"] + offer["taxes_cost"]
    assert parts == pytest.approx(offer["calculated_total"])


def test_unknown_log_level_falls_back(runner):
    result = runner.invoke(cli, ["rules"], env={"COMPARE_ENERGY_LOG_LEVEL": "verbose"})

    assert result.exit_code == 0, result.output
    assert result.exception is None
    assert "23%" in result.output


def test_shipped_rules_file_is_loaded(runner, tmp_path, monkeypatch):
    path = tmp_path / "vat_rules.yaml"
    path.write_text("vat:\n  standard_rate: 0.2\n")
    monkeypatch.delenv("COMPARE_ENERGY_VAT_RULES", raising=False)
    monkeypatch.setattr("compare_energy.cli.DEFAULT_CONFIG_PATH", path)

    result = runner.invoke(cli, ["rules"])

    assert result.exit_code == 0, result.output
    assert "20%" in result.output


def test_invalid_rules_file_is_reported(runner, tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("vat:\n  standard: 0.21\n")

    result = runner.invoke(cli, ["--vat-rules", str(path), "rules"])

    assert result.exit_code == 1
    assert "Could not load VAT rules" in result.output


def test_compare_rejects_nan_input(runner):
    result = runner.invoke(cli, ["compare", *BILL_ARGS, "--offer-energy-price", "nan"])

    assert result.exit_code == 2
