import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    api_key: str
    db_path: Path
    max_batch_events: int = 500


def load_settings() -> Settings:
    """Настройки backend берутся только из переменных окружения ACCT_*."""
    repo_root = Path(__file__).resolve().parents[2]
    db_path = Path(os.getenv("ACCT_DB_PATH", str(repo_root / "backend" / "data" / "trials.db"))).expanduser()
    return Settings(
        api_key=os.getenv("ACCT_API_KEY", "").strip(),
        db_path=db_path,
        max_batch_events=max(1, int(os.getenv("ACCT_MAX_BATCH_EVENTS", "500"))),
    )
