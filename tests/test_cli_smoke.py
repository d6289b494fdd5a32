from __future__ import annotations

import json
from pathlib import Path

from control_assurance.cli.main import main


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_assurance_score_cli_smoke(local_tmp: Path, capsys) -> None:
    input_path = _write(
        local_tmp / "input.json",
        {
            "controls": [
                {"code": "D1", "dimension": "D", "criticality": "critical", "status": "no", "evidence_exists": False,
                 "attested_at": "2026-03-20T10:00:00"},
                {"code": "D2", "dimension": "D", "criticality": "critical", "status": "yes", "evidence_exists": True,
                 "attested_at": "2026-03-20T10:00:00"},
                {"code": "D3", "dimension": "D", "criticality": "critical", "status": "yes", "evidence_exists": True,
                 "attested_at": "2026-03-20T10:00:00"},
                {"code": "I1", "dimension": "I", "criticality": "critical", "status": "yes", "evidence_exists": True},
                {"code": "M1", "dimension": "M", "criticality": "critical", "status": "partial", "evidence_exists": True},
                {"code": "E1", "dimension": "E", "criticality": "critical", "status": "yes", "evidence_exists": True},
            ],
            "evidence_requests": [
                {"id": "er-1", "status": "open", "due_date": "2026-03-01", "is_critical_scope": True,
                 "secondary_control_instance_id": "D1"},
            ],
        },
    )
    output_path = local_tmp / "out" / "result.json"

    code = main([str(input_path), "--out", str(output_path), "--as-of", "2026-03-31"])

    assert code == 0
    result = json.loads(output_path.read_text(encoding="utf-8"))
    assert result["dime"]["d_score"] == 1.0
    assert result["dime"]["cap_details"]["d_capped"] is True
    assert result["dime"]["constrained_by"] == "D"
    assert result["effectiveness"]["computed"] is True
    assert isinstance(result["confidence"]["confidence_score"], int)
    assert any("overdue" in d["text"] for d in result["confidence"]["drivers"])
    assert set(result["dimensions"]) == {"D", "I", "M", "E"}
    assert "wrote=" in capsys.readouterr().out


def test_assurance_score_rejects_unknown_status(local_tmp: Path) -> None:
    input_path = _write(
        local_tmp / "bad.json",
        {"controls": [{"code": "D1", "dimension": "D", "criticality": "critical", "status": "maybe"}]},
    )
    assert main([str(input_path), "--out", str(local_tmp / "result.json")]) == 2


def test_assurance_score_missing_input(local_tmp: Path) -> None:
    assert main([str(local_tmp / "nope.json")]) == 2


def test_serve_prepares_runtime_dir(local_tmp: Path, monkeypatch) -> None:
    from control_assurance import packaged_app

    # setenv first so teardown restores whatever prepare_runtime writes.
    for name in ("DATABASE_URL", "RUNTIME_DIR"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    target = local_tmp / "runtime"

    chosen = packaged_app.prepare_runtime(str(target))

    assert chosen == target
    assert target.is_dir()
    assert packaged_app.os.environ["DATABASE_URL"].endswith("/runtime/control_assurance.db")
    assert 0 < packaged_app.pick_port(packaged_app.PREFERRED_PORT) < 65536


def test_assurance_score_accepts_offset_timestamps(local_tmp: Path, capsys) -> None:
    input_path = _write(
        local_tmp / "offset.json",
        {
            "controls": [
                {"code": "D1", "dimension": "D", "criticality": "critical", "status": "yes", "evidence_exists": True,
                 "attested_at": "2026-10-01T09:00:00+00:00"},
                {"code": "I1", "dimension": "I", "criticality": "critical", "status": "yes", "evidence_exists": True,
                 "attested_at": "2026-10-02T09:00:00Z"},
            ],
        },
    )
    output_path = local_tmp / "offset_result.json"

    code = main([str(input_path), "--out", str(output_path), "--as-of", "2026-10-19"])

    assert code == 0
    result = json.loads(output_path.read_text(encoding="utf-8"))
    texts = [d["text"] for d in result["confidence"]["drivers"]]
    assert "Last attestation 16 days ago" in texts
    assert "wrote=" in capsys.readouterr().out
