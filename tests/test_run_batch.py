import argparse
import json
from pathlib import Path

import pytest

from gestational_glucose.engine import ClinicalEngine
from gestational_glucose.run_batch import (
    CallableSource,
    JsonDirectorySource,
    _build_overrides,
    _parse_override,
    parse_args,
    run,
)


def _payload(name: str = "Batch Patient") -> dict:
    return {
        "patientName": name,
        "gestationalWeeks": 29,
        "usesInsulin": True,
        "insulinRegimens": [{"type": "NPH", "doseManhaUI": 10, "doseDormirUI": 6}],
        "glucoseReadings": [
            {"measurementDate": f"2025-05-0{day}", "jejum": 110 + day, "madrugada": 96}
            for day in range(1, 8)
        ],
    }


def test_json_directory_source_loads_payload(tmp_path: Path):
    (tmp_path / "eval-1.json").write_text(json.dumps(_payload()))

    source = JsonDirectorySource(tmp_path)

    assert source.load("eval-1")["patientName"] == "Batch Patient"
    with pytest.raises(FileNotFoundError):
        source.load("missing")


def test_json_directory_source_requires_directory(tmp_path: Path):
    with pytest.raises(ValueError):
        JsonDirectorySource(tmp_path / "nope")


def test_callable_source_requires_mapping():
    source = CallableSource(lambda evaluation_id: _payload(evaluation_id))
    assert source.load("abc")["patientName"] == "abc"

    with pytest.raises(TypeError):
        CallableSource(lambda evaluation_id: [evaluation_id]).load("abc")


def test_run_serializes_analyses_and_reports_invalid_payloads():
    records = [("good", _payload()), ("bad", {"patientName": "x"})]

    results = run(records, ClinicalEngine())

    good = results["good"]
    assert good["insulinAdjustments"]["results"][0]["direction"] == "increase"
    assert good["insulinAdjustments"]["results"][0]["insulin"] == "NPH_NOTURNA"
    assert results["bad"]["error"] == "validation_error"
    assert results["bad"]["details"]
    json.dumps(results)


def test_threshold_overrides_split_by_rule():
    pairs = [_parse_override("excursion_delta=50"), _parse_override("fasting_nocturnal.fasting_target=100")]

    thresholds, rule_settings = _build_overrides(pairs)

    assert thresholds == {"excursion_delta": 50.0}
    assert rule_settings == {"fasting_nocturnal": {"fasting_target": 100.0}}
    with pytest.raises(argparse.ArgumentTypeError):
        _parse_override("missing-value")


def test_parse_args_defaults():
    args = parse_args(["--input", "a.json"])

    assert args.window_days == 7
    assert args.max_gap_days == 2
    assert args.trend_threshold == 8.0
    assert args.input == [Path("a.json")]
