import os
import sys
import tempfile
from functools import lru_cache
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _load_env_file_if_present() -> None:
    env_file = BASE_DIR / ".env"
    if not env_file.exists():
        return
    try:
        lines = env_file.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key or key in os.environ:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ[key] = value


_load_env_file_if_present()


def _default_runtime_dir() -> Path:
    if getattr(sys, "frozen", False) or getattr(sys, "_MEIPASS", ""):
        candidates: list[Path] = []
        local_appdata = os.getenv("LOCALAPPDATA", "").strip()
        if local_appdata:
            candidates.append(Path(local_appdata) / "ControlAssurance" / "data")
        candidates.append(Path.home() / ".control_assurance" / "data")
        candidates.append(Path.cwd() / "data")
        candidates.append(Path(tempfile.gettempdir()) / "ControlAssurance" / "data")

        for path in candidates:
            try:
                path.mkdir(parents=True, exist_ok=True)
                return path
            except OSError:
                continue
    return BASE_DIR / "data"


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


class Settings:
    def __init__(self) -> None:
        self.app_name: str = os.getenv("APP_NAME", "Control Assurance")
        self.app_env: str = os.getenv("APP_ENV", "dev")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        self.runtime_dir: Path = Path(os.getenv("RUNTIME_DIR", str(_default_runtime_dir()))).expanduser()
        self.runtime_dir.mkdir(parents=True, exist_ok=True)
        default_db_path: Path = self.runtime_dir / "control_assurance.db"
        self.database_url: str = os.getenv("DATABASE_URL", f"sqlite:///{default_db_path.as_posix()}")
        self.cors_allowed_origins: list[str] = _split_csv(
            os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://127.0.0.1,http://localhost,http://127.0.0.1:56471,http://localhost:56471",
            )
        )
        self.cors_allow_origin_regex: str = os.getenv(
            "CORS_ALLOW_ORIGIN_REGEX",
            r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        )
        # Empty URL disables the provider; recommendations then come from the library table only.
        self.suggestion_provider_url: str = os.getenv("SUGGESTION_PROVIDER_URL", "").strip()
        self.suggestion_provider_timeout_seconds: int = int(os.getenv("SUGGESTION_PROVIDER_TIMEOUT_SECONDS", "8"))
        self.confidence_high_threshold: int = int(os.getenv("CONFIDENCE_HIGH_THRESHOLD", "90"))
        self.confidence_medium_threshold: int = int(os.getenv("CONFIDENCE_MEDIUM_THRESHOLD", "70"))


@lru_cache
def get_settings() -> Settings:
    return Settings()
