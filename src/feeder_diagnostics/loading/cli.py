from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from .assessment import classify_load_status, compute_assessment
from .diagnosis import diagnose_structured
from .constants import MAX_FEEDER_LEGS
from .models import DEFAULT_SETTINGS, EngineSettings, FeederLegReading, LoadMonitoringInputs

logger = logging.getLogger(__name__)


def _parse_leg(raw: str) -> FeederLegReading:
    return FeederLegReading.from_values(*raw.split(",")[:4])


def load_inputs(path: str | None, *, rating: str | None, legs: List[str]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if path:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Input JSON not found: {path}")
        data = json.loads(p.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Input JSON must be an object")

    # Command line values override the file
    if rating is not None:
        data["rating"] = rating
    if legs:
        data["feederLegs"] = [_parse_leg(raw) for raw in legs]
    return data


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Transformer load assessment and phase balancing diagnosis."
    )
    parser.add_argument(
        "--input",
        "-i",
        help="Path to a load monitoring record JSON ({'rating': ..., 'feederLegs': [...]}).",
    )
    parser.add_argument("--rating", help="Transformer rating (kVA).")
    parser.add_argument(
        "--leg",
        action="append",
        default=[],
        metavar="R,Y,B,N",
        help="Feeder leg currents (A). Repeat for each leg.",
    )
    parser.add_argument("--settings", help="Path to threshold settings JSON.")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON.")
    parser.add_argument("--output", "-o", help="Also write the JSON result to this path.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        settings = EngineSettings.from_json(args.settings) if args.settings else DEFAULT_SETTINGS
        raw = load_inputs(args.input, rating=args.rating, legs=args.leg)
        inputs = LoadMonitoringInputs.model_validate(raw)
    except ValidationError as e:
        print("Input validation error:", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2
    except (FileNotFoundError, json.JSONDecodeError, ValueError) as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2

    if inputs.exceeds_leg_limit():
        logger.warning(f"{len(inputs.feeder_legs)} feeder legs recorded; forms allow at most {MAX_FEEDER_LEGS}")

    assessment = compute_assessment(inputs.rating_kva, inputs.feeder_legs, settings)
    diagnosis = diagnose_structured(inputs.rating_kva, inputs.feeder_legs, settings)
    logger.info(
        f"Assessed {len(inputs.feeder_legs)} legs: {assessment.percentage_load:.2f}% load, "
        f"{len(diagnosis.lines)} report lines"
    )

    load_status = classify_load_status(assessment.percentage_load, settings)
    document = {
        "assessment": assessment.to_dict(),
        "loadStatus": load_status.value,
        "diagnosis": [line.to_dict() for line in diagnosis.lines],
        "problemLegIndex": diagnosis.problem_leg_index,
    }
    if args.output:
        Path(args.output).write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")

    if args.json:
        print(json.dumps(document, indent=2, ensure_ascii=False))
    else:
        a = assessment
        print(f"Rated load: {a.rated_load:.2f} A per phase")
        print(
            f"Bulk load R/Y/B: {a.red_phase_bulk_load:.2f} / {a.yellow_phase_bulk_load:.2f} / "
            f"{a.blue_phase_bulk_load:.2f} A"
        )
        print(f"Percentage load: {a.percentage_load:.2f}% ({load_status.value})")
        print(
            f"Calculated neutral: {a.calculated_neutral:.2f} A "
            f"(rated {a.ten_percent_full_load_neutral:.2f} A) [{a.neutral_warning_level.value}]"
        )
        print(f"Phase imbalance: {a.imbalance_percentage:.2f}% [{a.imbalance_warning_level.value}]")
        for message in (a.neutral_warning_message, a.imbalance_warning_message):
            if message:
                print(message, file=sys.stderr)
        print()
        for text in diagnosis.messages:
            print(text)

    return 1 if diagnosis.has_issues else 0


if __name__ == "__main__":
    raise SystemExit(main())
