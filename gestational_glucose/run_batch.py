"""Command-line utility for analyzing patient evaluations in batch.

Each evaluation is a JSON object in the wire format accepted by
``gestational_glucose.schemas.EvaluationPayload``::

    {
        "patientName": "...",
        "gestationalWeeks": 30,
        "usesInsulin": true,
        "insulinRegimens": [{"type": "NPH", "morningUI": 10, "bedtimeUI": 6}],
        "glucoseReadings": [
            {"measurementDate": "2025-01-01", "jejum": 92, "posCafe1h": 131},
            ...
        ]
    }

Name files ``<evaluation_id>.json`` inside ``--data-dir`` and select them with
``--evaluation`` / ``--evaluation-file``, or pass files directly with
``--input``. Results are written as JSON to stdout or to ``--output``.
"""
from __future__ import annotations

import argparse
import csv
import json
import logging
from importlib import import_module
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import pandas as pd
from pydantic import ValidationError

from .engine import ClinicalEngine
from .schemas import parse_evaluation
from .serialization import analysis_to_dict

logger = logging.getLogger(__name__)


def _load_evaluation_ids(args: argparse.Namespace) -> list[str]:
    evaluation_ids: list[str] = []
    if args.evaluation:
        evaluation_ids.extend(args.evaluation)
    if args.evaluation_file:
        for path in args.evaluation_file:
            file_path = Path(path)
            if file_path.suffix.lower() == ".csv":
                with file_path.open(newline="") as handle:
                    reader = csv.reader(handle)
                    for idx, row in enumerate(reader):
                        if not row:
                            continue
                        value = row[0].strip()
                        if not value:
                            continue
                        if idx == 0 and value.lower() in {"evaluation_id", "id"}:
                            continue
                        evaluation_ids.append(value)
            else:
                with file_path.open() as handle:
                    for line in handle:
                        line = line.strip()
                        if line:
                            evaluation_ids.append(line)
    return evaluation_ids


class JsonDirectorySource:
    """Reads ``<evaluation_id>.json`` files from a directory."""

    def __init__(self, root: Path) -> None:
        if not root.is_dir():
            raise ValueError(f"Evaluation data directory not found: {root}")
        self._root = root

    def load(self, evaluation_id: str) -> Mapping[str, Any]:
        file_path = self._root / f"{evaluation_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Missing evaluation file for {evaluation_id}: {file_path}")
        with file_path.open() as handle:
            return json.load(handle)


class CallableSource:
    """Wraps a Python callable that returns one evaluation mapping per id."""

    def __init__(self, fetcher: Callable[[str], Mapping[str, Any]]) -> None:
        self._fetcher = fetcher

    def load(self, evaluation_id: str) -> Mapping[str, Any]:
        record = self._fetcher(evaluation_id)
        if not isinstance(record, Mapping):
            raise TypeError("Evaluation fetcher must return a mapping")
        return record


def _parse_override(text: str) -> tuple[str, float]:
    try:
        key, raw_value = text.split("=", 1)
        return key.strip(), float(raw_value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected KEY=NUMBER, got {text!r}") from None


def _build_overrides(
    pairs: Iterable[tuple[str, float]] | None,
) -> tuple[dict[str, float], dict[str, dict[str, float]]]:
    """Split ``key`` and ``rule_id.key`` overrides into global and per-rule maps."""

    thresholds: dict[str, float] = {}
    rule_settings: dict[str, dict[str, float]] = {}
    for key, value in pairs or ():
        if "." in key:
            rule_id, setting = key.split(".", 1)
            rule_settings.setdefault(rule_id, {})[setting] = value
        else:
            thresholds[key] = value
    return thresholds, rule_settings


def run(
    records: Iterable[tuple[str, Mapping[str, Any]]],
    engine: ClinicalEngine,
    *,
    now=None,
) -> dict[str, dict]:
    """Analyze each ``(evaluation_id, payload)``; invalid payloads are reported, not raised."""

    results: dict[str, dict] = {}
    for evaluation_id, payload in records:
        try:
            evaluation = parse_evaluation(payload)
        except ValidationError as exc:
            logger.error("Invalid evaluation %s: %d validation error(s)", evaluation_id, exc.error_count())
            results[evaluation_id] = {
                "error": "validation_error",
                "details": json.loads(exc.json(include_url=False, include_input=False)),
            }
            continue
        analysis = engine.analyze(evaluation, now=now)
        logger.info("Evaluation %s analyzed: urgency=%s", evaluation_id, analysis.urgency_level.value)
        results[evaluation_id] = analysis_to_dict(analysis)
    return results


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the gestational glucose clinical engine in batch")
    parser.add_argument("--data-dir", type=Path, help="Directory containing <evaluation_id>.json files")
    parser.add_argument("--evaluation", action="append", help="Evaluation ID to process (may be repeated)")
    parser.add_argument(
        "--evaluation-file",
        action="append",
        help="Path to file with newline-delimited evaluation IDs",
    )
    parser.add_argument("--input", action="append", type=Path, help="Evaluation JSON file (may be repeated)")
    parser.add_argument(
        "--fetcher",
        help="Python callable (module:function) that returns an evaluation mapping per ID",
    )
    parser.add_argument("--window-days", type=int, default=7, help="Number of records in the analysis window")
    parser.add_argument("--max-gap-days", type=int, default=2, help="Largest tolerated gap between dated records")
    parser.add_argument("--trend-threshold", type=float, default=8.0, help="Trend deviation threshold in mg/dL")
    parser.add_argument(
        "--threshold",
        action="append",
        type=_parse_override,
        help="Rule threshold override KEY=VALUE or RULE_ID.KEY=VALUE (may be repeated)",
    )
    parser.add_argument("--now", help="Reference date (YYYY-MM-DD) for staleness notes")
    parser.add_argument("--output", type=Path, help="Optional output JSON file")
    parser.add_argument("--indent", type=int, default=None, help="Pretty-print JSON with the given indent")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return parser.parse_args(argv)


def _resolve_callable(path: str) -> Callable[[str], Mapping[str, Any]]:
    try:
        module_name, func_name = path.rsplit(":", 1)
    except ValueError as exc:  # pragma: no cover - defensive branch
        raise ValueError("Fetcher must be in 'module:function' format") from exc
    module = import_module(module_name)
    func = getattr(module, func_name, None)
    if not callable(func):  # pragma: no cover - defensive branch
        raise TypeError(f"{path!r} is not callable")
    return func


def _collect_records(args: argparse.Namespace) -> list[tuple[str, Mapping[str, Any]]]:
    records: list[tuple[str, Mapping[str, Any]]] = []
    for path in args.input or ():
        with path.open() as handle:
            records.append((path.stem, json.load(handle)))

    evaluation_ids = _load_evaluation_ids(args)
    if evaluation_ids:
        if args.fetcher:
            source = CallableSource(_resolve_callable(args.fetcher))
        elif args.data_dir:
            source = JsonDirectorySource(args.data_dir)
        else:
            raise SystemExit("Either --data-dir or --fetcher must be provided with evaluation IDs")
        records.extend((evaluation_id, source.load(evaluation_id)) for evaluation_id in evaluation_ids)

    if not records:
        raise SystemExit("No evaluations provided. Use --input, --evaluation or --evaluation-file.")
    return records


def main(argv: list[str] | None = None) -> int:  # pragma: no cover - CLI entry point
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    thresholds, rule_settings = _build_overrides(args.threshold)
    engine = ClinicalEngine(
        window_days=args.window_days,
        max_gap_days=args.max_gap_days,
        trend_threshold=args.trend_threshold,
        thresholds=thresholds,
        rule_settings=rule_settings,
    )
    now = pd.to_datetime(args.now).date() if args.now else None
    results = run(_collect_records(args), engine, now=now)

    output_text = json.dumps(results, indent=args.indent)
    if args.output:
        args.output.write_text(output_text)
    else:
        print(output_text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
