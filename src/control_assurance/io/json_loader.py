from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from ..models import EvidenceRequest, SecondaryControlInstance, to_control_instance, to_evidence_request


@dataclass(slots=True, frozen=True)
class AssessmentInput:
    controls: tuple[SecondaryControlInstance, ...]
    evidence_requests: tuple[EvidenceRequest, ...]


def load_assessment_file(path: Path) -> AssessmentInput:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError('Input JSON must be an object with a "controls" list.')
    controls_raw = raw.get("controls")
    if not isinstance(controls_raw, list):
        raise ValueError('"controls" must be a list of secondary control answers.')
    requests_raw = raw.get("evidence_requests") or []
    if not isinstance(requests_raw, list):
        raise ValueError('"evidence_requests" must be a list.')

    controls: list[SecondaryControlInstance] = []
    for idx, item in enumerate(controls_raw):
        if not isinstance(item, dict):
            raise ValueError("Each control must be an object.")
        controls.append(to_control_instance(item, index=idx))  # type: ignore[arg-type]

    requests: list[EvidenceRequest] = []
    for idx, item in enumerate(requests_raw):
        if not isinstance(item, dict):
            raise ValueError("Each evidence request must be an object.")
        requests.append(to_evidence_request(item, index=idx))  # type: ignore[arg-type]
    return AssessmentInput(controls=tuple(controls), evidence_requests=tuple(requests))


def dump_result_file(path: Path, payload: dict[str, object]) -> None:
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
