from __future__ import annotations

import sys
from pathlib import Path
from uuid import uuid4

import pytest


ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
LOCAL_TMP_ROOT = Path(__file__).resolve().parent / ".tmp_local"

for path in (ROOT_DIR, SRC_DIR):
    value = str(path)
    if path.exists() and value not in sys.path:
        sys.path.insert(0, value)


@pytest.fixture
def local_tmp() -> Path:
    LOCAL_TMP_ROOT.mkdir(parents=True, exist_ok=True)
    path = LOCAL_TMP_ROOT / f"run_{uuid4().hex[:8]}"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def sqlite_env(local_tmp: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the app at a throwaway SQLite file and a disabled suggestion provider."""
    db_path = local_tmp / "assurance.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("RUNTIME_DIR", str(local_tmp))
    monkeypatch.setenv("SUGGESTION_PROVIDER_URL", "")
    monkeypatch.delenv("CONFIDENCE_HIGH_THRESHOLD", raising=False)
    return db_path
