from __future__ import annotations

import argparse
import sys
from datetime import date, datetime
from pathlib import Path

from ..core import ConfidenceInputs, compute_confidence, compute_dime_score, dimension_breakdown, normalize_effectiveness
from ..errors import AssuranceError
from ..io import dump_result_file, load_assessment_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assurance-score",
        description="Compute DIME effectiveness and confidence for one PCI instance's attestation set.",
    )
    parser.add_argument("input", help='JSON file with "controls" and optional "evidence_requests" lists')
    parser.add_argument(
        "--out",
        default="output/result.json",
        help="Output JSON file path (default: output/result.json)",
    )
    parser.add_argument(
        "--as-of",
        default="",
        help="Evaluation date (YYYY-MM-DD) for recency and overdue checks (default: today)",
    )
    return parser


def _as_of(value: str) -> datetime:
    if not value:
        return datetime.utcnow()
    return datetime.combine(date.fromisoformat(value), datetime.min.time())


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    input_path = Path(args.input).resolve()
    output_path = Path(args.out).resolve()

    if not input_path.exists() or not input_path.is_file():
        print(f"error: input file not found: {input_path}", file=sys.stderr)
        return 2

    try:
        now = _as_of(args.as_of)
        assessment = load_assessment_file(input_path)
        dime = compute_dime_score(assessment.controls, computed_at=now)
        confidence = compute_confidence(
            ConfidenceInputs(controls=assessment.controls, evidence_requests=assessment.evidence_requests, now=now)
        )
    except (ValueError, AssuranceError) as exc:
        print(f"error: invalid input: {exc}", file=sys.stderr)
        return 2

    effectiveness = normalize_effectiveness(dime)
    payload = {
        "dime": dime.to_dict(),
        "dimensions": dimension_breakdown(dime),
        "effectiveness": effectiveness.to_dict(),
        "confidence": confidence.to_dict(),
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    dump_result_file(output_path, payload)

    pct = "n/a" if effectiveness.percentage is None else f"{effectiveness.percentage}%"
    print(f"effectiveness={pct} ({effectiveness.label})")
    print(f"confidence={confidence.confidence_score} ({confidence.confidence_label.value})")
    print(f"wrote={output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
